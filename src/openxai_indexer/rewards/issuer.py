"""Proof issuance - compute, lock, number, sign and record a reward claim."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from web3 import Web3

from openxai_indexer.errors import (
    AlreadyClaimed,
    InvariantViolation,
    SigningError,
    UnknownChain,
    ValidationError,
)
from openxai_indexer.interfaces.signer import SignerProvider
from openxai_indexer.ledger.events import EventLedger
from openxai_indexer.models.config import ChainConfig
from openxai_indexer.models.records import ChainRewardsState, Proof, RewardsState
from openxai_indexer.rewards.engine import RewardEngine
from openxai_indexer.rewards.references import canonicalize
from openxai_indexer.storage.durable import DurableStore

log = logging.getLogger(__name__)

CLAIM_DOMAIN_NAME = "OpenxAIClaiming"
CLAIM_DOMAIN_VERSION = "1"
CLAIM_PRIMARY_TYPE = "Claim"
CLAIM_TYPES = {
    "Claim": [
        {"name": "proofId", "type": "uint256"},
        {"name": "claimer", "type": "address"},
        {"name": "amount", "type": "uint256"},
    ],
}


class ProofIssuer:
    """Issues signed reward proofs, each event backing at most one request.

    Issuance runs three serialized sections on the rewards store with
    signing in between:

    1. claim-lock: mark every referenced event as claimed
    2. id assignment: advance the chain's proof counter
    3. commit: store the signed proof under its id

    Claimed marks are never undone. A request that fails after the lock
    (signing, commit) leaves its events spent and its id unused.
    """

    def __init__(
        self,
        events_store: DurableStore[EventLedger],
        rewards_store: DurableStore[RewardsState],
        engine: RewardEngine,
        signers: SignerProvider,
        chains: Mapping[int, ChainConfig],
    ) -> None:
        self._events = events_store
        self._rewards = rewards_store
        self._engine = engine
        self._signers = signers
        self._chains = dict(chains)

    async def ensure_chains(self) -> list[int]:
        """Create rewards state for configured chains that have none yet."""

        def _add_missing(state: RewardsState) -> list[int]:
            added = []
            for chain_id, chain in self._chains.items():
                if chain_id not in state:
                    state[chain_id] = ChainRewardsState(next_proof_id=chain.initial_proof_id)
                    added.append(chain_id)
            return added

        added = await self._rewards.update(_add_missing)
        for chain_id in added:
            log.info(
                "Initialized rewards state for chain %d (next proof id %d)",
                chain_id, self._chains[chain_id].initial_proof_id,
            )
        return added

    def domain(self, chain_id: int) -> dict:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise UnknownChain(chain_id)
        return {
            "name": CLAIM_DOMAIN_NAME,
            "version": CLAIM_DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": chain.claimer_address,
        }

    async def issue(self, chain_id: int, claimer: str, based_on: Sequence[str]) -> Proof:
        # Validate
        if chain_id not in self._chains:
            raise UnknownChain(chain_id)
        if not isinstance(claimer, str) or not Web3.is_address(claimer):
            raise ValidationError(f"Invalid claimer address {claimer!r}")
        claimer = Web3.to_checksum_address(claimer)
        if isinstance(based_on, str) or not based_on:
            raise ValidationError("basedOn must be a non-empty list of event references")
        references = [canonicalize(ref) for ref in based_on]
        if len(set(references)) != len(references):
            raise ValidationError("basedOn contains the same event more than once")

        # Compute against a snapshot; resolve the signer before touching state
        ledger = await self._events.get()
        amount = self._engine.calculate(chain_id, claimer, based_on, ledger)
        signer = self._signers.signer_for(chain_id)

        # Claim-lock: marks persist even when a conflict is found
        def _lock(state: RewardsState) -> str | None:
            chain_state = self._chain_state(state, chain_id)
            conflict = None
            for ref in references:
                if conflict is None and ref in chain_state.already_claimed:
                    conflict = ref
                chain_state.already_claimed.add(ref)
            return conflict

        conflict = await self._rewards.update(_lock)
        if conflict is not None:
            log.warning("Claim rejected on chain %d: %s already claimed", chain_id, conflict)
            raise AlreadyClaimed(conflict)

        # Id assignment
        def _next_id(state: RewardsState) -> int:
            chain_state = self._chain_state(state, chain_id)
            chain_state.next_proof_id += 1
            return chain_state.next_proof_id

        proof_id = await self._rewards.update(_next_id)

        # Sign, outside any lock
        message = {"proofId": proof_id, "claimer": claimer, "amount": amount}
        try:
            signature = await signer.sign_typed_data(
                self.domain(chain_id), CLAIM_TYPES, CLAIM_PRIMARY_TYPE, message,
            )
        except SigningError:
            log.error("Signing failed for proof %d on chain %d", proof_id, chain_id, exc_info=True)
            raise
        except Exception as exc:
            log.error("Signing failed for proof %d on chain %d", proof_id, chain_id, exc_info=True)
            raise SigningError(f"Signing failed: {exc}") from exc

        proof = Proof(
            proof_id=proof_id,
            claimer=claimer,
            amount=amount,
            based_on=tuple(based_on),
            signature=signature,
        )

        # Commit
        def _commit(state: RewardsState) -> None:
            chain_state = self._chain_state(state, chain_id)
            if proof_id in chain_state.proofs:
                log.critical("Proof id %d already used on chain %d", proof_id, chain_id)
                raise InvariantViolation(f"Proof id {proof_id} already used on chain {chain_id}")
            chain_state.proofs[proof_id] = proof

        await self._rewards.update(_commit)

        log.info(
            "Issued proof %d on chain %d: claimer=%s amount=%d events=%d",
            proof_id, chain_id, claimer, amount, len(references),
        )
        return proof

    @staticmethod
    def _chain_state(state: RewardsState, chain_id: int) -> ChainRewardsState:
        chain_state = state.get(chain_id)
        if chain_state is None:
            raise InvariantViolation(f"No rewards state for chain {chain_id}")
        return chain_state

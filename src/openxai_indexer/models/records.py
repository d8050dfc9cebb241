"""Record types persisted in the rewards and signs documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def _unhex(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


@dataclass(frozen=True)
class Proof:
    """A signed claim entitling ``claimer`` to ``amount`` (18 decimals)."""

    proof_id: int
    claimer: str
    amount: int
    based_on: tuple[str, ...]
    signature: bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "proofId": self.proof_id,
            "claimer": self.claimer,
            "amount": self.amount,
            "basedOn": list(self.based_on),
            "signature": _hex(self.signature),
        }

    @classmethod
    def from_dict(cls, doc: dict[str, Any]) -> Proof:
        return cls(
            proof_id=int(doc["proofId"]),
            claimer=doc["claimer"],
            amount=int(doc["amount"]),
            based_on=tuple(doc["basedOn"]),
            signature=_unhex(doc["signature"]),
        )


@dataclass
class ChainRewardsState:
    """Per-chain proof counter, issued proofs and claimed references."""

    next_proof_id: int
    proofs: dict[int, Proof] = field(default_factory=dict)
    already_claimed: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nextProofId": self.next_proof_id,
            "proofs": {str(pid): p.to_dict() for pid, p in sorted(self.proofs.items())},
            "alreadyClaimed": {ref: True for ref in sorted(self.already_claimed)},
        }

    @classmethod
    def from_dict(cls, doc: dict[str, Any]) -> ChainRewardsState:
        return cls(
            next_proof_id=int(doc["nextProofId"]),
            proofs={int(pid): Proof.from_dict(p) for pid, p in doc.get("proofs", {}).items()},
            already_claimed={ref for ref, claimed in doc.get("alreadyClaimed", {}).items() if claimed},
        )


# chain id -> state
RewardsState = dict[int, ChainRewardsState]


def rewards_to_document(state: RewardsState) -> dict[str, Any]:
    return {str(chain_id): chain.to_dict() for chain_id, chain in sorted(state.items())}


def rewards_from_document(doc: dict[str, Any]) -> RewardsState:
    return {int(chain_id): ChainRewardsState.from_dict(chain) for chain_id, chain in doc.items()}


@dataclass(frozen=True)
class SignRecord:
    """A verified personal-sign message uploaded by a user."""

    address: str
    message: str
    signature: str
    date: int  # server UNIX seconds at upload

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "message": self.message,
            "signature": self.signature,
            "date": self.date,
        }

    @classmethod
    def from_dict(cls, doc: dict[str, Any]) -> SignRecord:
        return cls(
            address=doc["address"],
            message=doc["message"],
            signature=doc["signature"],
            date=int(doc["date"]),
        )

"""Proof issuance: claim-lock, id assignment, signing and commit."""

from __future__ import annotations

import asyncio

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from openxai_indexer.errors import (
    AlreadyClaimed,
    InvariantViolation,
    NotRewardEligible,
    PersistenceError,
    SigningError,
    UnknownChain,
    ValidationError,
)
from openxai_indexer.models.records import Proof
from openxai_indexer.rewards.issuer import CLAIM_TYPES, ProofIssuer
from openxai_indexer.rewards.signer import KeyFileSignerProvider, LocalKeySigner

from tests.conftest import TEST_SIGNER_ADDRESS, TEST_SIGNER_KEY, seed
from tests.factories import CLAIMER, CLAIMER_CONTRACT, make_participated, make_transfer, ref

SEPOLIA = 11155111


# ── Test 1: Happy path ────────────────────────────────────────────


async def test_issue_proof(issuer, events, rewards, mock_signer):
    event = make_participated(tier=0, amount=1_000_000)
    await seed(events, event)

    proof = await issuer.issue(1, CLAIMER, [ref(event)])

    # Initial counter 1 is pre-incremented
    assert proof.proof_id == 2
    assert proof.claimer == CLAIMER
    assert proof.amount == 10**17
    assert proof.based_on == (ref(event),)
    assert len(proof.signature) == 65

    state = (await rewards.get())[1]
    assert state.next_proof_id == 2
    assert state.proofs[2] == proof
    assert ref(event) in state.already_claimed

    call = mock_signer.sign_calls[0]
    assert call["domain"] == {
        "name": "OpenxAIClaiming",
        "version": "1",
        "chainId": 1,
        "verifyingContract": CLAIMER_CONTRACT,
    }
    assert call["primary_type"] == "Claim"
    assert call["message"] == {"proofId": 2, "claimer": CLAIMER, "amount": 10**17}


async def test_test_chain_starts_at_configured_id(issuer, events):
    event = make_participated(chain_id=SEPOLIA, tier=1)
    await seed(events, event)

    proof = await issuer.issue(SEPOLIA, CLAIMER, [ref(event)])
    assert proof.proof_id == 12


async def test_claimer_is_checksummed(issuer, events):
    event = make_participated()
    await seed(events, event)

    proof = await issuer.issue(1, CLAIMER.lower(), [ref(event)])
    assert proof.claimer == CLAIMER


async def test_based_on_kept_as_supplied(issuer, events):
    event = make_participated()
    await seed(events, event)
    supplied = ref(event).replace('","logIndex"', '", "logIndex"')

    proof = await issuer.issue(1, CLAIMER, [supplied])
    assert proof.based_on == (supplied,)


async def test_ensure_chains_keeps_existing_state(issuer, rewards, events):
    event = make_participated()
    await seed(events, event)
    await issuer.issue(1, CLAIMER, [ref(event)])

    assert await issuer.ensure_chains() == []
    assert (await rewards.get())[1].next_proof_id == 2


# ── Test 2: Proof ids ─────────────────────────────────────────────


async def test_proof_ids_strictly_increase(issuer, events):
    records = [make_participated(log_index=i) for i in range(4)]
    await seed(events, *records)

    ids = [(await issuer.issue(1, CLAIMER, [ref(r)])).proof_id for r in records]
    assert ids == [2, 3, 4, 5]


async def test_concurrent_requests_get_distinct_ids(issuer, events, rewards, mock_signer):
    mock_signer.delay = 0.01
    records = [make_participated(log_index=i) for i in range(5)]
    await seed(events, *records)

    proofs = await asyncio.gather(*(issuer.issue(1, CLAIMER, [ref(r)]) for r in records))

    ids = sorted(p.proof_id for p in proofs)
    assert ids == [2, 3, 4, 5, 6]
    assert sorted((await rewards.get())[1].proofs) == ids


# ── Test 3: Double claims ─────────────────────────────────────────


async def test_second_claim_rejected(issuer, events):
    event = make_participated()
    await seed(events, event)

    await issuer.issue(1, CLAIMER, [ref(event)])
    with pytest.raises(AlreadyClaimed) as exc_info:
        await issuer.issue(1, CLAIMER, [ref(event)])
    assert exc_info.value.reference == ref(event)


async def test_concurrent_double_claim_only_one_wins(issuer, events, rewards):
    event = make_participated()
    await seed(events, event)

    results = await asyncio.gather(
        issuer.issue(1, CLAIMER, [ref(event)]),
        issuer.issue(1, CLAIMER, [ref(event)]),
        return_exceptions=True,
    )

    proofs = [r for r in results if isinstance(r, Proof)]
    rejected = [r for r in results if isinstance(r, AlreadyClaimed)]
    assert len(proofs) == 1
    assert len(rejected) == 1
    assert len((await rewards.get())[1].proofs) == 1


async def test_reference_spelling_does_not_bypass_lock(issuer, events):
    event = make_participated()
    await seed(events, event)
    await issuer.issue(1, CLAIMER, [ref(event)])

    upper = ref(event).replace(event.transaction_hash, "0x" + event.transaction_hash[2:].upper())
    with pytest.raises(AlreadyClaimed):
        await issuer.issue(1, CLAIMER, [upper])


async def test_partial_conflict_still_marks_the_rest(issuer, events, rewards):
    a = make_participated(log_index=0)
    b = make_participated(log_index=1)
    await seed(events, a, b)
    await issuer.issue(1, CLAIMER, [ref(a)])

    with pytest.raises(AlreadyClaimed):
        await issuer.issue(1, CLAIMER, [ref(a), ref(b)])

    # b is spent by the rejected request
    assert ref(b) in (await rewards.get())[1].already_claimed
    with pytest.raises(AlreadyClaimed):
        await issuer.issue(1, CLAIMER, [ref(b)])


async def test_per_chain_counters_are_independent(issuer, events):
    main = make_participated(chain_id=1)
    test = make_participated(chain_id=SEPOLIA)
    await seed(events, main, test)

    assert (await issuer.issue(1, CLAIMER, [ref(main)])).proof_id == 2
    assert (await issuer.issue(SEPOLIA, CLAIMER, [ref(test)])).proof_id == 12


# ── Test 4: Failures before the lock leave no trace ──────────────


async def test_duplicate_reference_in_request_rejected(issuer, events, rewards):
    event = make_participated()
    await seed(events, event)

    with pytest.raises(ValidationError):
        await issuer.issue(1, CLAIMER, [ref(event), ref(event)])
    assert (await rewards.get())[1].already_claimed == set()


async def test_calculation_failure_touches_nothing(issuer, events, rewards):
    event = make_transfer()
    await seed(events, event)

    with pytest.raises(NotRewardEligible):
        await issuer.issue(1, CLAIMER, [ref(event)])

    state = (await rewards.get())[1]
    assert state.already_claimed == set()
    assert state.next_proof_id == 1


async def test_missing_signer_touches_nothing(issuer, events, rewards, signer_provider):
    event = make_participated()
    await seed(events, event)
    signer_provider.available = False

    with pytest.raises(SigningError):
        await issuer.issue(1, CLAIMER, [ref(event)])
    assert (await rewards.get())[1].already_claimed == set()


@pytest.mark.parametrize("claimer, based_on", [
    ("not-an-address", ["event:{}"]),
    ("0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266", []),
    ("0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266", "event:{}"),
])
async def test_invalid_request_rejected(issuer, claimer, based_on):
    with pytest.raises(ValidationError):
        await issuer.issue(1, claimer, based_on)


async def test_unknown_chain(issuer):
    with pytest.raises(UnknownChain):
        await issuer.issue(137, CLAIMER, ["event:{}"])


# ── Test 5: Failures after the lock are irrevocable ──────────────


async def test_signing_failure_spends_events_and_id(issuer, events, rewards, mock_signer):
    a = make_participated(log_index=0)
    b = make_participated(log_index=1)
    await seed(events, a, b)
    mock_signer.succeed = False

    with pytest.raises(SigningError):
        await issuer.issue(1, CLAIMER, [ref(a)])

    state = (await rewards.get())[1]
    assert ref(a) in state.already_claimed
    assert state.next_proof_id == 2
    assert state.proofs == {}

    # The consumed id is never reused
    mock_signer.succeed = True
    proof = await issuer.issue(1, CLAIMER, [ref(b)])
    assert proof.proof_id == 3
    with pytest.raises(AlreadyClaimed):
        await issuer.issue(1, CLAIMER, [ref(a)])


async def test_persistence_failure_during_lock(issuer, events, rewards, medium):
    event = make_participated()
    await seed(events, event)
    medium.fail_saves = True

    with pytest.raises(PersistenceError):
        await issuer.issue(1, CLAIMER, [ref(event)])

    medium.fail_saves = False
    assert (await rewards.get())[1].already_claimed == set()
    assert (await issuer.issue(1, CLAIMER, [ref(event)])).proof_id == 2


async def test_commit_collision_is_invariant_violation(issuer, events, rewards):
    event = make_participated()
    await seed(events, event)

    def _plant(state):
        state[1].proofs[2] = Proof(2, CLAIMER, 1, ("event:x",), b"\x00" * 65)

    await rewards.update(_plant)
    with pytest.raises(InvariantViolation):
        await issuer.issue(1, CLAIMER, [ref(event)])
    assert (await rewards.get())[1].proofs[2].amount == 1


# ── Test 6: Real signatures ───────────────────────────────────────


async def test_local_key_signature_recovers_signer(events, rewards, engine, chains):
    provider = KeyFileSignerProvider(chains, "/nonexistent/signer.key", TEST_SIGNER_KEY)
    issuer = ProofIssuer(events, rewards, engine, provider, chains)
    await issuer.ensure_chains()
    event = make_participated()
    await seed(events, event)

    proof = await issuer.issue(1, CLAIMER, [ref(event)])

    signable = encode_typed_data(
        domain_data=issuer.domain(1),
        message_types=CLAIM_TYPES,
        message_data={"proofId": proof.proof_id, "claimer": proof.claimer, "amount": proof.amount},
    )
    assert Account.recover_message(signable, signature=proof.signature) == TEST_SIGNER_ADDRESS


def test_key_file_provider_reads_file(tmp_path, chains):
    key_file = tmp_path / "signer.key"
    key_file.write_text(TEST_SIGNER_KEY + "\n")
    provider = KeyFileSignerProvider(chains, str(key_file))
    assert provider.signer_for(1).address == TEST_SIGNER_ADDRESS


def test_key_file_provider_errors(tmp_path, chains):
    provider = KeyFileSignerProvider(chains, str(tmp_path / "missing.key"))
    with pytest.raises(SigningError):
        provider.signer_for(1)
    with pytest.raises(UnknownChain):
        provider.signer_for(137)

    (tmp_path / "bad.key").write_text("not-hex")
    with pytest.raises(SigningError):
        KeyFileSignerProvider(chains, str(tmp_path / "bad.key")).signer_for(1)


def test_local_key_signer_rejects_bad_key():
    with pytest.raises(SigningError):
        LocalKeySigner.from_key("0x1234")

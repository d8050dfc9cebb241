"""Reward computation over a ledger snapshot."""

from __future__ import annotations

from fractions import Fraction
from typing import Iterable, assert_never

from openxai_indexer.errors import (
    AddressMismatch,
    CrossChainReference,
    MilestoneNotCompleted,
    NotRewardEligible,
    UnknownEvent,
)
from openxai_indexer.ledger.events import EventLedger
from openxai_indexer.models.events import Approval, Participated, TokensClaimed, Transfer
from openxai_indexer.rewards.milestones import MilestoneTable
from openxai_indexer.rewards.references import EventReference

# Participation amounts have 6 decimals, reward tokens 18.
DECIMALS_SHIFT = 10**12


class RewardEngine:
    """Pure reward calculation. Same inputs always give the same amount."""

    def __init__(self, milestones: MilestoneTable, test_chain_ids: Iterable[int] = ()) -> None:
        self._milestones = milestones
        self._test_chains = frozenset(test_chain_ids)

    def calculate(
        self,
        chain_id: int,
        claimer: str,
        based_on: Iterable[str],
        ledger: EventLedger,
    ) -> int:
        """Sum the rewards of every referenced participation.

        Raises on the first reference that does not qualify; there is no
        partial result.
        """
        total = 0
        for raw in based_on:
            ref = EventReference.parse(raw)
            if ref.key.chain_id != chain_id:
                raise CrossChainReference(
                    f"Event {ref.canonical} is not on chain {chain_id}"
                )
            event = ledger.get(ref.key)
            if event is None:
                raise UnknownEvent(f"Event {ref.canonical} not found")

            match event:
                case Participated():
                    pass
                case TokensClaimed() | Approval() | Transfer():
                    raise NotRewardEligible(
                        f"Event {ref.canonical} is {event.type}, not Participated"
                    )
                case _:
                    assert_never(event)

            if event.account.lower() != claimer.lower():
                raise AddressMismatch(
                    f"Event {ref.canonical} belongs to {event.account}, not {claimer}"
                )
            milestone = self._milestones.lookup(event.tier)
            if not milestone.completed and chain_id not in self._test_chains:
                raise MilestoneNotCompleted(f"Milestone {event.tier} is not completed")

            total += round(Fraction(event.amount) * DECIMALS_SHIFT * milestone.rate)
        return total

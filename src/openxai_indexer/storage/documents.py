"""The durable documents of the service and their codecs."""

from __future__ import annotations

from openxai_indexer.interfaces.medium import DocumentMedium
from openxai_indexer.ledger.events import EventLedger
from openxai_indexer.models.records import (
    RewardsState,
    SignRecord,
    rewards_from_document,
    rewards_to_document,
)
from openxai_indexer.storage.durable import DurableStore

EVENTS_DOCUMENT = "events"
REWARDS_DOCUMENT = "rewards"
SIGNS_DOCUMENT = "signs"


def events_store(medium: DocumentMedium) -> DurableStore[EventLedger]:
    return DurableStore(
        medium,
        EVENTS_DOCUMENT,
        default_factory=EventLedger,
        encode=lambda ledger: ledger.to_document(),
        decode=EventLedger.from_document,
    )


def rewards_store(medium: DocumentMedium) -> DurableStore[RewardsState]:
    return DurableStore(
        medium,
        REWARDS_DOCUMENT,
        default_factory=dict,
        encode=rewards_to_document,
        decode=rewards_from_document,
    )


def signs_store(medium: DocumentMedium) -> DurableStore[list[SignRecord]]:
    return DurableStore(
        medium,
        SIGNS_DOCUMENT,
        default_factory=list,
        encode=lambda signs: [s.to_dict() for s in signs],
        decode=lambda doc: [SignRecord.from_dict(s) for s in doc],
    )

"""Event ingestion - routes every delivered event through the durable ledger."""

from __future__ import annotations

import logging
from typing import Iterable

from openxai_indexer.errors import UnknownChain, ValidationError
from openxai_indexer.interfaces.source import ChainEventSource
from openxai_indexer.ledger.events import EventLedger
from openxai_indexer.models.events import EventRecord
from openxai_indexer.storage.durable import DurableStore

log = logging.getLogger(__name__)


class EventIngestor:
    """Idempotent ingestion of live and historical events."""

    def __init__(
        self,
        events_store: DurableStore[EventLedger],
        sources: Iterable[ChainEventSource] = (),
    ) -> None:
        self._store = events_store
        self._sources = {s.chain_id: s for s in sources}

    def has_chain(self, chain_id: int) -> bool:
        return chain_id in self._sources

    async def ingest(self, event: EventRecord) -> bool:
        """Insert one event. Returns False for a redelivered event."""
        return await self.ingest_all([event]) == 1

    async def ingest_all(self, events: Iterable[EventRecord]) -> int:
        """Insert a batch in a single ledger update. Returns the number of new events."""
        batch = list(events)
        if not batch:
            return 0

        def _insert(ledger: EventLedger) -> list[EventRecord]:
            return [event for event in batch if ledger.insert(event)]

        inserted = await self._store.update(_insert)
        for event in inserted:
            log.info(
                "Ingested %s chain=%d tx=%s log=%d",
                event.type, event.chain_id, event.transaction_hash, event.log_index,
            )
        if len(inserted) < len(batch):
            log.debug("Skipped %d redelivered events", len(batch) - len(inserted))
        return len(inserted)

    async def sync_history(self, chain_id: int, from_block: int, to_block: int) -> int:
        """Ingest past events of ``chain_id`` in the inclusive block range.

        Returns the number of newly stored events.
        """
        source = self._sources.get(chain_id)
        if source is None:
            raise UnknownChain(chain_id)
        if from_block < 0 or to_block < from_block:
            raise ValidationError(f"Invalid block range {from_block}..{to_block}")

        log.info("History sync chain=%d blocks %d..%d", chain_id, from_block, to_block)
        events = await source.fetch_range(from_block, to_block)
        added = await self.ingest_all(events)
        log.info(
            "History sync chain=%d done: %d fetched, %d new", chain_id, len(events), added,
        )
        return added

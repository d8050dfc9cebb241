"""ChainEventSource protocol - produces chain-tagged contract events."""

from __future__ import annotations

from typing import Protocol

from openxai_indexer.models.events import EventRecord


class ChainEventSource(Protocol):
    """Delivers decoded events for one chain. May redeliver events already seen."""

    chain_id: int

    async def poll(self) -> list[EventRecord]:
        """Fetch events emitted since the last committed poll."""
        ...

    def commit(self) -> None:
        """Acknowledge the events of the latest poll once they are stored."""
        ...

    async def fetch_range(self, from_block: int, to_block: int) -> list[EventRecord]:
        """Fetch past events in the inclusive block range."""
        ...

    async def close(self) -> None:
        ...

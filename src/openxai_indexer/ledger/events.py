"""Append-only event ledger keyed by (chain, transaction, log index)."""

from __future__ import annotations

from typing import Any, Iterator

from openxai_indexer.models.events import EventKey, EventRecord, event_from_dict, event_to_dict


class EventLedger:
    """chainId -> transactionHash -> logIndex -> EventRecord.

    Entries are never replaced or removed.
    """

    def __init__(self) -> None:
        self._entries: dict[int, dict[str, dict[int, EventRecord]]] = {}

    def insert(self, event: EventRecord) -> bool:
        """Store ``event`` unless its key is already present.

        Returns True when the event was new.
        """
        by_tx = self._entries.setdefault(event.chain_id, {})
        by_log = by_tx.setdefault(event.transaction_hash, {})
        if event.log_index in by_log:
            return False
        by_log[event.log_index] = event
        return True

    def get(self, key: EventKey) -> EventRecord | None:
        return self._entries.get(key.chain_id, {}).get(key.transaction_hash, {}).get(key.log_index)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, EventKey) and self.get(key) is not None

    def events(self, chain_id: int | None = None) -> Iterator[EventRecord]:
        chains = [chain_id] if chain_id is not None else list(self._entries)
        for cid in chains:
            for by_log in self._entries.get(cid, {}).values():
                yield from by_log.values()

    def __len__(self) -> int:
        return sum(len(by_log) for by_tx in self._entries.values() for by_log in by_tx.values())

    def __deepcopy__(self, memo: dict[int, Any]) -> EventLedger:
        # Records are frozen; only the index dicts need copying.
        clone = EventLedger()
        clone._entries = {
            chain_id: {tx: dict(by_log) for tx, by_log in by_tx.items()}
            for chain_id, by_tx in self._entries.items()
        }
        return clone

    # ── Document form ────────────────────────────────────────

    def to_document(self) -> dict[str, Any]:
        return {
            str(chain_id): {
                tx: {str(idx): event_to_dict(ev) for idx, ev in by_log.items()}
                for tx, by_log in by_tx.items()
            }
            for chain_id, by_tx in self._entries.items()
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> EventLedger:
        ledger = cls()
        for by_tx in doc.values():
            for by_log in by_tx.values():
                for raw in by_log.values():
                    ledger.insert(event_from_dict(raw))
        return ledger

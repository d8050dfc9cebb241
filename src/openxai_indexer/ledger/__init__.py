"""Event ledger and ingestion."""

from openxai_indexer.ledger.events import EventLedger
from openxai_indexer.ledger.ingestor import EventIngestor

__all__ = ["EventLedger", "EventIngestor"]

"""Data models for the openxai_indexer service."""

from openxai_indexer.models.events import (
    Approval,
    EventKey,
    EventRecord,
    Participated,
    TokensClaimed,
    Transfer,
    event_from_dict,
    event_to_dict,
)
from openxai_indexer.models.records import ChainRewardsState, Proof, RewardsState, SignRecord
from openxai_indexer.models.config import ChainConfig, IndexerConfig

__all__ = [
    "Approval", "EventKey", "EventRecord", "Participated", "TokensClaimed", "Transfer",
    "event_from_dict", "event_to_dict",
    "ChainRewardsState", "Proof", "RewardsState", "SignRecord",
    "ChainConfig", "IndexerConfig",
]

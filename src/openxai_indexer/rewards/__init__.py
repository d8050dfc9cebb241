"""Reward calculation and proof issuance."""

from openxai_indexer.rewards.engine import RewardEngine
from openxai_indexer.rewards.issuer import ProofIssuer
from openxai_indexer.rewards.milestones import Milestone, MilestoneTable
from openxai_indexer.rewards.references import EventReference, canonicalize
from openxai_indexer.rewards.signer import KeyFileSignerProvider, LocalKeySigner

__all__ = [
    "RewardEngine",
    "ProofIssuer",
    "Milestone", "MilestoneTable",
    "EventReference", "canonicalize",
    "KeyFileSignerProvider", "LocalKeySigner",
]

"""Error taxonomy for ingestion and proof issuance.

Every error carries the HTTP status the API layer answers with. Caller
faults are 4xx; server faults (``server_fault = True``) are 500 and are
logged with a traceback.
"""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for all core errors."""

    status: int = 400
    server_fault: bool = False


class ValidationError(IndexerError):
    """Malformed request input (address, reference, block range, ...)."""


class UnknownChain(IndexerError):
    """Chain id is not configured on this service."""

    def __init__(self, chain_id: int) -> None:
        super().__init__(f"Unknown chain {chain_id}")
        self.chain_id = chain_id


class UnknownEvent(IndexerError):
    """Referenced event is not in the ledger."""

    status = 404


class CrossChainReference(IndexerError):
    """Reference points at an event on a different chain than requested."""


class NotRewardEligible(IndexerError):
    """Referenced event is of a type that does not earn rewards."""


class AddressMismatch(IndexerError):
    """Participation event belongs to a different account than the claimer."""


class UnknownMilestone(IndexerError):
    """Tier index falls outside the milestone table."""


class MilestoneNotCompleted(IndexerError):
    """Tier has not reached completion on a production chain."""


class AlreadyClaimed(IndexerError):
    """An event reference was already used by an earlier request."""

    status = 409

    def __init__(self, reference: str) -> None:
        super().__init__(f"Event {reference} already claimed")
        self.reference = reference


class SigningError(IndexerError):
    """Signer is unavailable or failed to produce a signature."""

    status = 500
    server_fault = True


class PersistenceError(IndexerError):
    """The durable medium could not be read or written."""

    status = 500
    server_fault = True


class InvariantViolation(IndexerError):
    """Internal state contradicts a guaranteed invariant. Treat as fatal."""

    status = 500
    server_fault = True

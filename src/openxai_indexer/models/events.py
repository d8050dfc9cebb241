"""Contract event models decoded from chain logs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from openxai_indexer.errors import ValidationError

_TX_HASH = re.compile(r"^0x[0-9a-fA-F]{64}$")

# (attribute, wire name) pairs shared by every event
_COMMON = (
    ("chain_id", "chainId"),
    ("block_number", "blockNumber"),
    ("transaction_hash", "transactionHash"),
    ("log_index", "logIndex"),
    ("address", "address"),
    ("timestamp", "timestamp"),
)


def _require_int(value: Any, name: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValidationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return value


def normalize_tx_hash(value: Any) -> str:
    """Validate a transaction hash and return it in lower case."""
    if not isinstance(value, str) or not _TX_HASH.match(value):
        raise ValidationError(f"Invalid transaction hash {value!r}")
    return value.lower()


@dataclass(frozen=True)
class EventKey:
    """Unique identity of a ledger entry."""

    chain_id: int
    transaction_hash: str
    log_index: int

    @classmethod
    def of(cls, chain_id: Any, transaction_hash: Any, log_index: Any) -> EventKey:
        """Build a validated key with a normalized transaction hash."""
        return cls(
            chain_id=_require_int(chain_id, "chainId", minimum=1),
            transaction_hash=normalize_tx_hash(transaction_hash),
            log_index=_require_int(log_index, "logIndex"),
        )


@dataclass(frozen=True)
class EventBase:
    chain_id: int
    block_number: int
    transaction_hash: str
    log_index: int
    address: str  # emitting contract
    timestamp: int  # block timestamp, UNIX seconds

    type: ClassVar[str] = ""
    PAYLOAD: ClassVar[tuple[tuple[str, str], ...]] = ()

    @property
    def key(self) -> EventKey:
        return EventKey(self.chain_id, self.transaction_hash, self.log_index)


@dataclass(frozen=True)
class TokensClaimed(EventBase):
    """Emitted by the claimer contract when a proof is redeemed."""

    proof_id: int
    account: str
    amount: int

    type: ClassVar[str] = "TokensClaimed"
    PAYLOAD: ClassVar[tuple[tuple[str, str], ...]] = (
        ("proof_id", "proofId"),
        ("account", "account"),
        ("amount", "amount"),
    )


@dataclass(frozen=True)
class Participated(EventBase):
    """Emitted by the genesis contract when an account backs a tier.

    ``amount`` uses 6 decimals (stable coin units).
    """

    tier: int
    account: str
    amount: int

    type: ClassVar[str] = "Participated"
    PAYLOAD: ClassVar[tuple[tuple[str, str], ...]] = (
        ("tier", "tier"),
        ("account", "account"),
        ("amount", "amount"),
    )


@dataclass(frozen=True)
class Approval(EventBase):
    """ERC-20 Approval on the token contract."""

    owner: str
    spender: str
    value: int

    type: ClassVar[str] = "Approval"
    PAYLOAD: ClassVar[tuple[tuple[str, str], ...]] = (
        ("owner", "owner"),
        ("spender", "spender"),
        ("value", "value"),
    )


@dataclass(frozen=True)
class Transfer(EventBase):
    """ERC-20 Transfer on the token contract."""

    from_: str
    to: str
    value: int

    type: ClassVar[str] = "Transfer"
    PAYLOAD: ClassVar[tuple[tuple[str, str], ...]] = (
        ("from_", "from"),
        ("to", "to"),
        ("value", "value"),
    )


EventRecord = Union[TokensClaimed, Participated, Approval, Transfer]

EVENT_TYPES: dict[str, type[EventBase]] = {
    cls.type: cls for cls in (TokensClaimed, Participated, Approval, Transfer)
}


def event_to_dict(event: EventRecord) -> dict[str, Any]:
    """Flat JSON-ready form: ``type`` + common fields + payload fields."""
    doc: dict[str, Any] = {"type": event.type}
    for attr, wire in _COMMON + event.PAYLOAD:
        doc[wire] = getattr(event, attr)
    return doc


def event_from_dict(doc: dict[str, Any]) -> EventRecord:
    cls = EVENT_TYPES.get(doc.get("type", ""))
    if cls is None:
        raise ValidationError(f"Unknown event type {doc.get('type')!r}")
    try:
        kwargs = {attr: doc[wire] for attr, wire in _COMMON + cls.PAYLOAD}
    except KeyError as exc:
        raise ValidationError(f"{cls.type} event is missing field {exc.args[0]}") from exc
    kwargs["transaction_hash"] = normalize_tx_hash(kwargs["transaction_hash"])
    return cls(**kwargs)  # type: ignore[return-value]

"""Event references - the strings claimants cite in ``basedOn``.

A reference is ``"event:"`` followed by the JSON object
``{"chainId", "transactionHash", "logIndex"}``. The canonical form uses
that key order, no whitespace and a lower-case hash, so two references to
the same event always compare equal once canonicalized.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from openxai_indexer.errors import ValidationError
from openxai_indexer.models.events import EventKey

PREFIX = "event:"


@dataclass(frozen=True)
class EventReference:
    key: EventKey

    @classmethod
    def parse(cls, reference: object) -> EventReference:
        if not isinstance(reference, str) or not reference.startswith(PREFIX):
            raise ValidationError(f"Invalid event reference {reference!r}")
        try:
            body = json.loads(reference[len(PREFIX):])
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Invalid event reference {reference!r}: {exc}") from exc
        if not isinstance(body, dict):
            raise ValidationError(f"Invalid event reference {reference!r}")
        return cls(EventKey.of(body.get("chainId"), body.get("transactionHash"), body.get("logIndex")))

    @classmethod
    def for_key(cls, key: EventKey) -> EventReference:
        return cls(key)

    @property
    def canonical(self) -> str:
        body = {
            "chainId": self.key.chain_id,
            "transactionHash": self.key.transaction_hash,
            "logIndex": self.key.log_index,
        }
        return PREFIX + json.dumps(body, separators=(",", ":"))

    def __str__(self) -> str:
        return self.canonical


def canonicalize(reference: object) -> str:
    """Parse ``reference`` and return its canonical string."""
    return EventReference.parse(reference).canonical

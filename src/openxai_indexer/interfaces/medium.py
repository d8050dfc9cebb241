"""DocumentMedium protocol - named documents with get-all / replace-all access."""

from __future__ import annotations

from typing import Any, Protocol


class DocumentMedium(Protocol):
    """Backing medium for durable stores. No partial-write primitive."""

    async def initialize(self) -> None:
        """Open the medium and create its schema if needed."""
        ...

    async def close(self) -> None:
        ...

    async def load(self, name: str) -> Any | None:
        """Return the whole document stored under ``name``, or None."""
        ...

    async def save(self, name: str, document: Any) -> None:
        """Replace the whole document stored under ``name``."""
        ...

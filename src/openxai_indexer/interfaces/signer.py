"""Signer protocols - structured-data signatures bound to a per-chain key."""

from __future__ import annotations

from typing import Any, Protocol


class Signer(Protocol):
    """Produces an EIP-712 signature over a typed message."""

    @property
    def address(self) -> str:
        ...

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        primary_type: str,
        message: dict[str, Any],
    ) -> bytes:
        ...


class SignerProvider(Protocol):
    """Resolves the signer for a chain."""

    def signer_for(self, chain_id: int) -> Signer:
        """Raises UnknownChain or SigningError when no usable key exists."""
        ...

"""EIP-712 signers backed by local private keys."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Mapping

from eth_account import Account
from eth_account.signers.local import LocalAccount

from openxai_indexer.errors import SigningError, UnknownChain
from openxai_indexer.models.config import ChainConfig

log = logging.getLogger(__name__)

_HEX_KEY = re.compile(r"^0x[0-9a-fA-F]{64}$")


class LocalKeySigner:
    """Signs typed data with an in-memory account."""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> LocalKeySigner:
        key = private_key.strip()
        if not key.startswith("0x"):
            key = "0x" + key
        if not _HEX_KEY.match(key):
            raise SigningError("Invalid signer private key.")
        try:
            return cls(Account.from_key(key))
        except ValueError as exc:
            raise SigningError(f"Invalid signer private key: {exc}") from exc

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        primary_type: str,
        message: dict[str, Any],
    ) -> bytes:
        # eth_account infers the primary type from the single non-domain type
        if primary_type not in types:
            raise SigningError(f"Unknown primary type {primary_type}")
        try:
            signed = self._account.sign_typed_data(
                domain_data=domain,
                message_types={primary_type: types[primary_type]},
                message_data=message,
            )
        except Exception as exc:
            raise SigningError(f"Signing failed: {exc}") from exc
        return bytes(signed.signature)


class KeyFileSignerProvider:
    """Resolves a chain's signer from its key file on every request.

    An explicit key (from the environment) takes precedence over any file.
    """

    def __init__(
        self,
        chains: Mapping[int, ChainConfig],
        default_key_path: str,
        private_key: str = "",
    ) -> None:
        self._chains = dict(chains)
        self._default_key_path = default_key_path
        self._private_key = private_key

    def key_path(self, chain_id: int) -> Path:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise UnknownChain(chain_id)
        return Path(chain.signer_key_path or self._default_key_path).expanduser()

    def signer_for(self, chain_id: int) -> LocalKeySigner:
        path = self.key_path(chain_id)
        if self._private_key:
            return LocalKeySigner.from_key(self._private_key)
        try:
            key = path.read_text(encoding="utf-8")
        except OSError as exc:
            log.error("Cannot read signer key %s: %s", path, exc)
            raise SigningError(f"Signer key unavailable for chain {chain_id}") from exc
        return LocalKeySigner.from_key(key)

"""Polling log source for one EVM chain, built on web3's async client."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from web3 import AsyncWeb3, Web3

from openxai_indexer.chain.abi import CLAIMER_ABI, GENESIS_ABI, TOKEN_ABI
from openxai_indexer.models.config import ChainConfig
from openxai_indexer.models.events import (
    Approval,
    EventRecord,
    Participated,
    TokensClaimed,
    Transfer,
)

log = logging.getLogger(__name__)

_TIMESTAMP_CACHE_SIZE = 10_000


def decode_event(
    chain_id: int,
    name: str,
    data: Mapping[str, Any],
    timestamp: int,
) -> EventRecord | None:
    """Turn a web3 ``EventData`` into a ledger event.

    Returns None for events this service does not store.
    """
    args = data["args"]
    common = dict(
        chain_id=chain_id,
        block_number=int(data["blockNumber"]),
        transaction_hash=Web3.to_hex(data["transactionHash"]).lower(),
        log_index=int(data["logIndex"]),
        address=Web3.to_checksum_address(data["address"]),
        timestamp=int(timestamp),
    )
    if name == "TokensClaimed":
        return TokensClaimed(
            **common,
            proof_id=int(args["proofId"]),
            account=Web3.to_checksum_address(args["account"]),
            amount=int(args["amount"]),
        )
    if name == "Participated":
        return Participated(
            **common,
            tier=int(args["tier"]),
            account=Web3.to_checksum_address(args["account"]),
            amount=int(args["amount"]),
        )
    if name == "Approval":
        return Approval(
            **common,
            owner=Web3.to_checksum_address(args["owner"]),
            spender=Web3.to_checksum_address(args["spender"]),
            value=int(args["value"]),
        )
    if name == "Transfer":
        return Transfer(
            **common,
            from_=Web3.to_checksum_address(args["from"]),
            to=Web3.to_checksum_address(args["to"]),
            value=int(args["value"]),
        )
    return None


class Web3LogSource:
    """Fetches claimer, genesis and token events of one chain.

    The first poll starts ``lookback_blocks`` behind the head; later polls
    continue after the last committed block. The cursor only moves on
    ``commit``, so a batch that failed to ingest is fetched again. Redelivery
    is harmless because ingestion is idempotent.
    """

    def __init__(
        self,
        chain: ChainConfig,
        lookback_blocks: int = 100,
        batch_size: int = 2000,
    ) -> None:
        self.chain_id = chain.chain_id
        self._name = chain.name
        self._lookback = lookback_blocks
        self._batch_size = max(1, batch_size)
        self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(chain.rpc_url))
        self._last_block: int | None = None
        self._start_block: int | None = None
        self._pending_block: int | None = None
        self._timestamps: dict[int, int] = {}

        # (event name, event class) for each configured contract
        self._events: list[tuple[str, Any]] = []
        for address, abi in (
            (chain.claimer_address, CLAIMER_ABI),
            (chain.genesis_address, GENESIS_ABI),
            (chain.token_address, TOKEN_ABI),
        ):
            if not address:
                continue
            contract = self._w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
            for entry in abi:
                self._events.append((entry["name"], getattr(contract.events, entry["name"])))

    @property
    def last_block(self) -> int | None:
        return self._last_block

    async def poll(self) -> list[EventRecord]:
        head = await self._w3.eth.block_number
        if self._last_block is None:
            if self._start_block is None:
                self._start_block = max(0, head - self._lookback)
            from_block = self._start_block
        elif head <= self._last_block:
            return []
        else:
            from_block = self._last_block + 1

        events = await self.fetch_range(from_block, head)
        self._pending_block = head
        if events:
            log.info(
                "%s: %d events in blocks %d-%d", self._name, len(events), from_block, head,
            )
        return events

    def commit(self) -> None:
        if self._pending_block is not None:
            self._last_block = self._pending_block
            self._pending_block = None

    async def fetch_range(self, from_block: int, to_block: int) -> list[EventRecord]:
        results: list[EventRecord] = []
        start = from_block
        while start <= to_block:
            end = min(start + self._batch_size - 1, to_block)
            for name, event in self._events:
                logs = await event.get_logs(from_block=start, to_block=end)
                for data in logs:
                    timestamp = await self._block_timestamp(int(data["blockNumber"]))
                    record = decode_event(self.chain_id, name, data, timestamp)
                    if record is not None:
                        results.append(record)
            log.debug("%s: fetched blocks %d-%d", self._name, start, end)
            start = end + 1
        results.sort(key=lambda e: (e.block_number, e.log_index))
        return results

    async def _block_timestamp(self, block_number: int) -> int:
        ts = self._timestamps.get(block_number)
        if ts is None:
            block = await self._w3.eth.get_block(block_number)
            ts = int(block["timestamp"])
            if len(self._timestamps) >= _TIMESTAMP_CACHE_SIZE:
                self._timestamps.clear()
            self._timestamps[block_number] = ts
        return ts

    async def close(self) -> None:
        await self._w3.provider.disconnect()

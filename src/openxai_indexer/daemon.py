"""Main service loop - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Sequence

from openxai_indexer.api.http_server import IndexerHTTPServer
from openxai_indexer.chain.source import Web3LogSource
from openxai_indexer.interfaces.medium import DocumentMedium
from openxai_indexer.interfaces.signer import SignerProvider
from openxai_indexer.interfaces.source import ChainEventSource
from openxai_indexer.ledger.ingestor import EventIngestor
from openxai_indexer.models.config import IndexerConfig
from openxai_indexer.rewards.engine import RewardEngine
from openxai_indexer.rewards.issuer import ProofIssuer
from openxai_indexer.rewards.milestones import MilestoneTable
from openxai_indexer.rewards.signer import KeyFileSignerProvider
from openxai_indexer.storage.documents import events_store, rewards_store, signs_store
from openxai_indexer.storage.sqlite import SQLiteDocumentMedium

log = logging.getLogger(__name__)


class IndexerDaemon:
    """Event indexer and proof service.

    Polls every configured chain, ingests events into the ledger and serves
    the HTTP API until stopped.
    """

    def __init__(
        self,
        cfg: IndexerConfig,
        sources: Sequence[ChainEventSource] | None = None,
        signers: SignerProvider | None = None,
        milestones: MilestoneTable | None = None,
        medium: DocumentMedium | None = None,
    ) -> None:
        self._cfg = cfg
        self._running = False
        self._stopped = asyncio.Event()
        self._poll_tasks: list[asyncio.Task] = []
        self._fetching: set[asyncio.Task] = set()

        chains = {c.chain_id: c for c in cfg.chains}

        # Durable state
        self.medium = medium if medium is not None else SQLiteDocumentMedium(cfg.db_path)
        self.events_store = events_store(self.medium)
        self.rewards_store = rewards_store(self.medium)
        self.signs_store = signs_store(self.medium)

        # Rewards
        self.milestones = milestones if milestones is not None else MilestoneTable.load(cfg.projects_path)
        self.engine = RewardEngine(self.milestones, cfg.test_chain_ids)
        self.signers = signers or KeyFileSignerProvider(
            chains, cfg.signer_key_path, cfg.signer_key,
        )
        self.issuer = ProofIssuer(
            self.events_store, self.rewards_store, self.engine, self.signers, chains,
        )

        # Ingestion
        if sources is None:
            sources = [
                Web3LogSource(c, cfg.lookback_blocks, cfg.batch_size)
                for c in cfg.chains if c.rpc_url
            ]
        self.sources = list(sources)
        self.ingestor = EventIngestor(self.events_store, self.sources)

        self.http = IndexerHTTPServer(
            self.ingestor,
            self.issuer,
            self.events_store,
            self.rewards_store,
            self.signs_store,
            base_path=cfg.base_path,
            host=cfg.host,
            port=cfg.port,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Initialize components and run until stopped."""
        log.info("Starting openxai_indexer")
        log.info("  Database: %s", self._cfg.db_path)
        for chain in self._cfg.chains:
            log.info(
                "  Chain %s (%d)%s: claimer=%s genesis=%s token=%s",
                chain.name, chain.chain_id, " [test]" if chain.test_chain else "",
                chain.claimer_address or "-", chain.genesis_address or "-",
                chain.token_address or "-",
            )

        await self.medium.initialize()
        try:
            await self.issuer.ensure_chains()
            await self.http.start()

            self._running = True
            for source in self.sources:
                self._poll_tasks.append(
                    asyncio.create_task(self._poll_loop(source), name=f"poll-{source.chain_id}")
                )

            await self._stopped.wait()
        finally:
            await self.shutdown()
            log.info("Service shut down cleanly")

    async def stop(self) -> None:
        """Signal the service to stop gracefully."""
        log.info("Stop requested")
        self._running = False
        self._stopped.set()

    async def _idle(self, seconds: float) -> None:
        """Sleep ``seconds`` or until a stop is requested."""
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _poll_loop(self, source: ChainEventSource) -> None:
        """Poll one chain and ingest what it delivers.

        Only the fetch is cancellable. A fetched batch is always ingested
        before the loop checks for a stop request.
        """
        task = asyncio.current_task()
        while self._running:
            try:
                self._fetching.add(task)
                try:
                    events = await source.poll()
                finally:
                    self._fetching.discard(task)

                added = await self.ingestor.ingest_all(events)
                source.commit()
                if added:
                    log.info("Chain %d: %d new events", source.chain_id, added)
                await self._idle(self._cfg.poll_interval)

            except asyncio.CancelledError:
                log.info("Poller for chain %d cancelled", source.chain_id)
                break
            except Exception as exc:
                log.error("Poll error on chain %d: %s", source.chain_id, exc, exc_info=True)
                await self._idle(self._cfg.error_backoff)

    async def shutdown(self) -> None:
        """Stop ingestion, then the API, then flush every store."""
        self._running = False
        self._stopped.set()

        # 1. No new ingestion; batches already fetched finish first
        for task in self._fetching:
            task.cancel()
        await asyncio.gather(*self._poll_tasks, return_exceptions=True)
        self._poll_tasks.clear()

        # 2. No new requests, background syncs cancelled
        await self.http.stop()
        await self.http.cancel_sync_tasks()
        for source in self.sources:
            try:
                await source.close()
            except Exception as exc:
                log.warning("Closing source for chain %d failed: %s", source.chain_id, exc)

        # 3. Final flush; queued updates drain first
        for store in (self.events_store, self.rewards_store, self.signs_store):
            await store.flush()
        await self.medium.close()


async def run_daemon(cfg: IndexerConfig) -> None:
    """Entry point for running the service."""
    daemon = IndexerDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()

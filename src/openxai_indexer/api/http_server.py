"""HTTP surface of the indexer.

Routes (all POST, JSON bodies, relative to the configured base path):
  sync          - trigger a background history sync for a block range
  filterEvents  - list ledger events matching a filter
  getProof      - issue a signed reward proof
  filterProofs  - list issued proofs matching a filter
  uploadSign    - store a verified personal-sign message
  filterSigns   - list stored messages matching a filter
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from aiohttp import web
from eth_account import Account
from eth_account.messages import encode_defunct

from openxai_indexer.api.filter import passes_filter
from openxai_indexer.errors import IndexerError, UnknownChain, ValidationError
from openxai_indexer.ledger.events import EventLedger
from openxai_indexer.ledger.ingestor import EventIngestor
from openxai_indexer.models.events import event_to_dict
from openxai_indexer.models.records import RewardsState, SignRecord
from openxai_indexer.rewards.issuer import ProofIssuer
from openxai_indexer.storage.durable import DurableStore

log = logging.getLogger(__name__)

SIGNATURE_FAILED = "Signature verification failed."


def _as_int(body: dict, field: str) -> int:
    value = body.get(field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError:
            pass
    raise ValidationError(f"{field} must be an integer, got {value!r}")


def _as_str(body: dict, field: str) -> str:
    value = body.get(field)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} must be a non-empty string")
    return value


async def _json_body(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


@web.middleware
async def _error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except IndexerError as exc:
        if exc.server_fault:
            log.error("%s failed: %s", request.path, exc, exc_info=True)
        else:
            log.info("%s rejected (%d): %s", request.path, exc.status, exc)
        return web.json_response({"error": str(exc)}, status=exc.status)
    except Exception as exc:
        log.error("%s failed: %s", request.path, exc, exc_info=True)
        return web.json_response({"error": str(exc) or "Unknown error"}, status=500)


@web.middleware
async def _cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        response: web.StreamResponse = web.Response()
        response.headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    else:
        response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


class IndexerHTTPServer:
    """aiohttp server exposing ingestion, proofs and signed messages."""

    def __init__(
        self,
        ingestor: EventIngestor,
        issuer: ProofIssuer,
        events_store: DurableStore[EventLedger],
        rewards_store: DurableStore[RewardsState],
        signs_store: DurableStore[list[SignRecord]],
        base_path: str = "/",
        host: str = "0.0.0.0",
        port: int = 3001,
    ) -> None:
        self.ingestor = ingestor
        self.issuer = issuer
        self.events_store = events_store
        self.rewards_store = rewards_store
        self.signs_store = signs_store
        self.base_path = base_path if base_path.endswith("/") else base_path + "/"
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None
        self._sync_tasks: set[asyncio.Task] = set()

    def _build_app(self) -> web.Application:
        app = web.Application(middlewares=[_cors_middleware, _error_middleware])
        base = self.base_path
        app.router.add_post(base + "sync", self._handle_sync)
        app.router.add_post(base + "filterEvents", self._handle_filter_events)
        app.router.add_post(base + "getProof", self._handle_get_proof)
        app.router.add_post(base + "filterProofs", self._handle_filter_proofs)
        app.router.add_post(base + "uploadSign", self._handle_upload_sign)
        app.router.add_post(base + "filterSigns", self._handle_filter_signs)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._runner = web.AppRunner(self._build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        log.info("Webserver started on %s:%d%s", self.host, self.port, self.base_path)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            log.info("Webserver stopped")

    # ── Background sync ─────────────────────────────────────

    def _spawn_sync(self, chain_id: int, from_block: int, to_block: int) -> asyncio.Task:
        task = asyncio.create_task(
            self.ingestor.sync_history(chain_id, from_block, to_block),
            name=f"sync-{chain_id}-{from_block}-{to_block}",
        )
        self._sync_tasks.add(task)
        task.add_done_callback(self._sync_done)
        return task

    def _sync_done(self, task: asyncio.Task) -> None:
        self._sync_tasks.discard(task)
        if task.cancelled():
            log.info("History sync %s cancelled", task.get_name())
        elif exc := task.exception():
            log.error("Error while executing history sync %s: %s", task.get_name(), exc,
                      exc_info=exc)

    async def cancel_sync_tasks(self) -> None:
        tasks = list(self._sync_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── Routes ──────────────────────────────────────────────

    async def _handle_sync(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        chain_id = _as_int(body, "chainId")
        from_block = _as_int(body, "fromBlock")
        to_block = _as_int(body, "toBlock")
        if not self.ingestor.has_chain(chain_id):
            raise UnknownChain(chain_id)
        if from_block < 0 or to_block < from_block:
            raise ValidationError(f"Invalid block range {from_block}..{to_block}")
        self._spawn_sync(chain_id, from_block, to_block)
        return web.Response()

    async def _handle_filter_events(self, request: web.Request) -> web.Response:
        flt = await _json_body(request)
        ledger = await self.events_store.get()
        matches = [
            doc for doc in (event_to_dict(ev) for ev in ledger.events())
            if passes_filter(doc, flt)
        ]
        return web.json_response(matches)

    async def _handle_get_proof(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        chain_id = _as_int(body, "chainId")
        claimer = _as_str(body, "claimer")
        based_on = body.get("basedOn")
        if not isinstance(based_on, list):
            raise ValidationError("basedOn must be a list of event references")
        proof = await self.issuer.issue(chain_id, claimer, based_on)
        return web.json_response(proof.to_dict())

    async def _handle_filter_proofs(self, request: web.Request) -> web.Response:
        flt = await _json_body(request)
        rewards = await self.rewards_store.get()
        matches = []
        for chain_id, chain_state in sorted(rewards.items()):
            for _, proof in sorted(chain_state.proofs.items()):
                doc = {"chainId": chain_id, **proof.to_dict()}
                if passes_filter(doc, flt):
                    matches.append(doc)
        return web.json_response(matches)

    async def _handle_upload_sign(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        address = _as_str(body, "address")
        message = body.get("message")
        if not isinstance(message, str):
            raise ValidationError("message must be a string")
        signature = _as_str(body, "signature")

        if not _verify_message(address, message, signature):
            log.info("Rejected sign upload for %s: bad signature", address)
            return web.json_response({"error": SIGNATURE_FAILED}, status=400)

        record = SignRecord(
            address=address, message=message, signature=signature, date=int(time.time()),
        )
        await self.signs_store.update(lambda signs: signs.append(record))
        log.info("Stored signed message from %s", address)
        return web.Response()

    async def _handle_filter_signs(self, request: web.Request) -> web.Response:
        flt = await _json_body(request)
        signs = await self.signs_store.get()
        return web.json_response(
            [doc for doc in (s.to_dict() for s in signs) if passes_filter(doc, flt)]
        )


def _verify_message(address: str, message: str, signature: str) -> bool:
    """Check an EIP-191 personal-sign signature against ``address``."""
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as exc:
        log.debug("Signature recovery failed: %s", exc)
        return False
    return recovered.lower() == address.lower()

"""Generic durable document with serialized copy-on-write updates."""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from openxai_indexer.errors import PersistenceError
from openxai_indexer.interfaces.medium import DocumentMedium

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Mutator = Callable[[T], Union[R, Awaitable[R]]]


class DurableStore(Generic[T]):
    """One named document held in memory and mirrored to a medium.

    ``update`` gives the mutator exclusive access to a deep copy of the
    committed value. The copy is persisted and swapped in only when the
    mutator returns; if it raises, nothing changes. Mutators run one at a
    time in arrival order.

    Committed values are never mutated in place, so whatever ``get``
    returns stays a consistent snapshot.
    """

    def __init__(
        self,
        medium: DocumentMedium,
        name: str,
        default_factory: Callable[[], T],
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        self._medium = medium
        self._name = name
        self._default_factory = default_factory
        self._encode = encode
        self._decode = decode
        self._lock = asyncio.Lock()
        self._value: T | None = None
        self._loaded = False

    async def _load(self) -> T:
        if not self._loaded:
            try:
                doc = await self._medium.load(self._name)
            except Exception as exc:
                raise PersistenceError(f"Could not load {self._name}: {exc}") from exc
            self._value = self._default_factory() if doc is None else self._decode(doc)
            self._loaded = True
        return self._value  # type: ignore[return-value]

    async def get(self) -> T:
        """Current committed value. Callers must not mutate it."""
        if self._loaded:
            return self._value  # type: ignore[return-value]
        async with self._lock:
            return await self._load()

    async def update(self, mutator: Mutator[T, R]) -> R:
        """Run ``mutator`` on a working copy and commit it when it returns."""
        async with self._lock:
            current = await self._load()
            working = copy.deepcopy(current)

            result = mutator(working)
            if inspect.isawaitable(result):
                result = await result

            await self._save(working)
            self._value = working
            return result  # type: ignore[return-value]

    async def flush(self) -> None:
        """Persist the committed value once every queued update has run."""
        async with self._lock:
            if not self._loaded:
                return
            await self._save(self._value)  # type: ignore[arg-type]
            log.debug("Flushed %s", self._name)

    async def _save(self, value: T) -> None:
        try:
            await self._medium.save(self._name, self._encode(value))
        except Exception as exc:
            log.error("Failed to persist %s: %s", self._name, exc)
            raise PersistenceError(f"Could not persist {self._name}: {exc}") from exc

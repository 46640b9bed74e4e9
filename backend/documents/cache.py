"""Read-through snapshot cache in front of the document store.

One ``DocumentCache`` is built per process (app factory or script) and
handed to whoever needs the roster. It guarantees:

  - at most one full read in flight; concurrent callers await that read
    and receive its result (or its exception)
  - snapshots expire after ``ttl_seconds`` (0 / None keeps them until
    invalidated)
  - ``invalidate()`` forces the next ``get()`` to hit the store, and a read
    that was already running cannot repopulate the cache afterwards
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from cachetools import Cache, TTLCache

from backend.common.constants import Collection, RECRUITMENT_APPLICATION_TYPE
from backend.documents.store import DocumentStore, document_key

logger = logging.getLogger(__name__)

DEFAULT_COLLECTIONS: tuple[str, ...] = tuple(c.value for c in Collection)

_SNAPSHOT_KEY = "snapshot"


def _consume_outcome(task: "asyncio.Future[Snapshot]") -> None:
    if not task.cancelled():
        task.exception()


def _is_recruitment(document: Any) -> bool:
    return isinstance(document, Mapping) and document.get("type") == RECRUITMENT_APPLICATION_TYPE


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of the collections at ``loaded_at``.

    The ``applications`` collection is split: recruitment applications are
    kept apart so leave code only ever sees leave applications.
    """

    collections: Mapping[str, list[dict[str, Any]]]
    recruitment_applications: list[dict[str, Any]] = field(default_factory=list)
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(cls, raw: Mapping[str, list[dict[str, Any]]]) -> "Snapshot":
        collections = {name: list(docs) for name, docs in raw.items()}
        recruitment: list[dict[str, Any]] = []
        apps = collections.get(Collection.applications.value)
        if apps is not None:
            recruitment = [doc for doc in apps if _is_recruitment(doc)]
            collections[Collection.applications.value] = [
                doc for doc in apps if not _is_recruitment(doc)
            ]
        return cls(collections=collections, recruitment_applications=recruitment)

    def get(self, name: str) -> list[dict[str, Any]]:
        return self.collections.get(name, [])

    @property
    def employees(self) -> list[dict[str, Any]]:
        return self.get(Collection.employees.value)

    @property
    def applications(self) -> list[dict[str, Any]]:
        return self.get(Collection.applications.value)

    @property
    def holidays(self) -> list[dict[str, Any]]:
        return self.get(Collection.holidays.value)


class DocumentCache:
    """Snapshot cache with TTL, in-flight read sharing and invalidation."""

    def __init__(
        self,
        store: DocumentStore,
        collections: Iterable[str] = DEFAULT_COLLECTIONS,
        ttl_seconds: Optional[float] = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._collections = tuple(collections)
        self._ttl = ttl_seconds or 0
        self._timer = timer
        self._entries = self._new_entries()
        self._inflight: Optional[asyncio.Future[Snapshot]] = None
        self._generation = 0
        self.reads = 0

    @property
    def store(self) -> DocumentStore:
        return self._store

    def _new_entries(self) -> Cache:
        if self._ttl > 0:
            return TTLCache(maxsize=1, ttl=self._ttl, timer=self._timer)
        return Cache(maxsize=1)

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    def peek(self) -> Optional[Snapshot]:
        """Cached snapshot if still fresh, without triggering a read."""
        return self._entries.get(_SNAPSHOT_KEY)

    async def get(self, force: bool = False) -> Snapshot:
        """Return a snapshot, reading through to the store when needed.

        ``force`` skips the cached snapshot, but still joins a read that is
        already in flight since that read is at least as fresh.
        """

        if not force:
            cached = self.peek()
            if cached is not None:
                logger.debug("Document cache hit (loaded %s)", cached.loaded_at.isoformat())
                return cached

        if self._inflight is not None:
            logger.debug("Awaiting in-flight document read")
            return await asyncio.shield(self._inflight)

        logger.debug("Document cache miss — refreshing (force=%s)", force)
        task = asyncio.ensure_future(self._load(self._generation))
        # Collect the outcome even if every awaiter was cancelled
        task.add_done_callback(_consume_outcome)
        self._inflight = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._inflight is task:
                self._inflight = None

    async def _load(self, generation: int) -> Snapshot:
        self.reads += 1
        started = time.perf_counter()
        raw = await self._store.find_collections(self._collections)
        snapshot = Snapshot.build(raw)
        if generation == self._generation:
            self._entries[_SNAPSHOT_KEY] = snapshot
        else:
            logger.debug("Discarding snapshot read before invalidation")
        logger.info(
            "Document snapshot loaded in %.2fms",
            (time.perf_counter() - started) * 1000,
        )
        return snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot; the next ``get()`` reads the store."""
        self._generation += 1
        self._entries.clear()
        self._inflight = None
        logger.debug("Document cache invalidated (generation %d)", self._generation)

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    async def write(
        self,
        collection: str,
        documents: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Upsert ``documents`` in one transaction and refresh the snapshot.

        Documents already in the snapshot are replaced by id, new ones are
        appended; documents not passed in are left alone.
        """

        stored = await self._store.upsert_many(collection, documents)

        cached = self.peek()
        if cached is not None:
            self._entries[_SNAPSHOT_KEY] = self._merge(cached, collection, stored)
        return stored

    @staticmethod
    def _merge(
        snapshot: Snapshot,
        collection: str,
        stored: list[dict[str, Any]],
    ) -> Snapshot:
        if collection == Collection.applications.value:
            current = snapshot.applications + snapshot.recruitment_applications
        else:
            current = snapshot.get(collection)

        by_key = {document_key(doc): doc for doc in stored}
        merged = [by_key.pop(document_key(doc), doc) for doc in current]
        merged.extend(by_key.values())

        raw = dict(snapshot.collections)
        raw[collection] = merged
        if (
            collection != Collection.applications.value
            and Collection.applications.value in raw
        ):
            raw[Collection.applications.value] = (
                snapshot.applications + snapshot.recruitment_applications
            )
        return replace(Snapshot.build(raw), loaded_at=snapshot.loaded_at)

"""Document collection store over async SQLAlchemy.

Every entity the portal keeps (employees, applications, holidays...) lives in
the ``documents`` table as a JSON body keyed by ``(collection, doc_id)``.
``doc_id`` is the string form of the body's ``id`` field.

Write operations run in a single transaction each, so a batch either lands
completely or not at all.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.common.exceptions import StorageUnavailableException
from backend.documents.models import Document

logger = logging.getLogger(__name__)

ID_FIELD = "id"


def document_key(document: Mapping[str, Any]) -> str | None:
    """Stable storage key for a document, or ``None`` if it has no id."""
    value = document.get(ID_FIELD)
    if value is None or value == "":
        return None
    return str(value)


class DocumentStore:
    """Read / upsert / delete-by-id access to document collections."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    async def find_all(self, collection: str) -> list[dict[str, Any]]:
        """Return every document body in ``collection``."""
        found = await self.find_collections([collection])
        return found[collection]

    async def find_collections(
        self,
        collections: Iterable[str],
    ) -> dict[str, list[dict[str, Any]]]:
        """Read several collections in one session (consistent snapshot)."""

        names = list(collections)
        found: dict[str, list[dict[str, Any]]] = {}
        current = names[0] if names else ""
        started = time.perf_counter()
        try:
            async with self._session_factory() as session:
                for current in names:
                    result = await session.execute(
                        select(Document.body)
                        .where(Document.collection == current)
                        .order_by(Document.created_at, Document.doc_id)
                    )
                    found[current] = [dict(body) for body in result.scalars().all()]
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Failed to read collection %s: %s", current, exc)
            raise StorageUnavailableException("read", current, str(exc)) from exc

        logger.debug(
            "Fetched %d collections in %.2fms (%s)",
            len(names),
            (time.perf_counter() - started) * 1000,
            ", ".join(f"{name}={len(docs)}" for name, docs in found.items()),
        )
        return found

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    async def upsert_many(
        self,
        collection: str,
        documents: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Replace-or-insert ``documents`` by id in one transaction.

        Documents without an id get a generated hex id. Returns the stored
        bodies (with ids filled in).
        """

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    return await self._upsert(session, collection, documents)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Failed to upsert into %s: %s", collection, exc)
            raise StorageUnavailableException("write", collection, str(exc)) from exc

    async def delete_where_id_not_in(
        self,
        collection: str,
        keep_ids: Iterable[Any],
    ) -> int:
        """Delete every document in ``collection`` whose id is not kept."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    return await self._delete_others(session, collection, keep_ids)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Failed to prune %s: %s", collection, exc)
            raise StorageUnavailableException("write", collection, str(exc)) from exc

    async def sync_collection(
        self,
        collection: str,
        documents: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Make ``collection`` hold exactly ``documents`` (upsert + prune)."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    stored = await self._upsert(session, collection, documents)
                    removed = await self._delete_others(
                        session, collection, [doc[ID_FIELD] for doc in stored],
                    )
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Failed to sync %s: %s", collection, exc)
            raise StorageUnavailableException("write", collection, str(exc)) from exc

        logger.info(
            "Synced %s: %d upserted, %d removed", collection, len(stored), removed,
        )
        return stored

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _upsert(
        session: AsyncSession,
        collection: str,
        documents: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        prepared: dict[str, dict[str, Any]] = {}
        for doc in documents:
            if not isinstance(doc, Mapping):
                continue
            body = dict(doc)
            key = document_key(body)
            if key is None:
                body[ID_FIELD] = uuid.uuid4().hex
                key = body[ID_FIELD]
            prepared[key] = body

        if not prepared:
            return []

        result = await session.execute(
            select(Document).where(
                Document.collection == collection,
                Document.doc_id.in_(list(prepared)),
            )
        )
        existing = {row.doc_id: row for row in result.scalars().all()}
        now = datetime.now(timezone.utc)

        for key, body in prepared.items():
            row = existing.get(key)
            if row is None:
                session.add(Document(collection=collection, doc_id=key, body=body))
            else:
                row.body = body
                row.updated_at = now

        await session.flush()
        return list(prepared.values())

    @staticmethod
    async def _delete_others(
        session: AsyncSession,
        collection: str,
        keep_ids: Iterable[Any],
    ) -> int:
        keep = [str(value) for value in keep_ids if value is not None and value != ""]
        stmt = delete(Document).where(Document.collection == collection)
        if keep:
            stmt = stmt.where(Document.doc_id.not_in(keep))
        result = await session.execute(stmt)
        return result.rowcount or 0

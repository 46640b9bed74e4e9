"""Document store façade — JSON collections with a read-through cache."""

from backend.documents.cache import DEFAULT_COLLECTIONS, DocumentCache, Snapshot
from backend.documents.store import DocumentStore

__all__ = [
    "DEFAULT_COLLECTIONS",
    "DocumentCache",
    "DocumentStore",
    "Snapshot",
]

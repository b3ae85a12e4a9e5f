"""Store interfaces and implementations for the resource index."""

from kgindex.storage.interfaces import IndexStoreInterface
from kgindex.storage.memory import InMemoryIndexStore
from kgindex.storage.sqlite import IndexDocumentRow, SQLiteIndexStore

__all__ = [
    "IndexStoreInterface",
    "InMemoryIndexStore",
    "SQLiteIndexStore",
    "IndexDocumentRow",
]

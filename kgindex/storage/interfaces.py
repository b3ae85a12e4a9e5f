"""Store interface definitions for the resource index."""

from abc import ABC, abstractmethod
from typing import Sequence

from kgindex.document import IndexDocument


class IndexStoreInterface(ABC):
    """Abstract interface to a key-addressable document index.

    Reads (`count`, `lookup_by_key`, `get_at`) are served from a reader
    snapshot: the committed state as of when the store was opened or last
    refreshed. Writes (`insert`, `replace_by_key`) go to the writer and become
    durable on `commit`; they are not visible to reads until `refresh`.

    Backends surface I/O or corruption failures as
    `kgindex.errors.StoreUnavailableError`.
    """

    @property
    @abstractmethod
    def key_field(self) -> str:
        """Name of the field `lookup_by_key` and `replace_by_key` address."""

    @property
    def location(self) -> str:
        """Human-readable description of where the index lives."""
        return type(self).__name__

    @abstractmethod
    async def count(self) -> int:
        """Return the number of documents in the reader snapshot."""

    @abstractmethod
    async def lookup_by_key(self, key: str) -> list[IndexDocument]:
        """Return every document whose key field equals `key` (possibly none)."""

    @abstractmethod
    async def get_at(self, ordinal: int) -> IndexDocument:
        """Return the full document at a zero-based position of the reader snapshot.

        Raises IndexError when `ordinal` is outside the snapshot.
        """

    @abstractmethod
    async def insert(self, document: IndexDocument) -> None:
        """Append a new document. Existing documents are unaffected."""

    @abstractmethod
    async def replace_by_key(self, key: str, document: IndexDocument) -> None:
        """Delete every document whose key field equals `key`, then insert `document`.

        N documents sharing the key collapse into the single supplied one.
        """

    @abstractmethod
    async def commit(self) -> None:
        """Durably flush pending writes."""

    @abstractmethod
    async def consolidate(self, target_segments: int) -> None:
        """Reduce physical fragmentation to at most `target_segments`. No effect on content."""

    async def refresh(self) -> None:
        """Reopen the reader snapshot on the latest committed state."""

    async def read_all(self) -> Sequence[IndexDocument]:
        """Return the reader snapshot in ordinal order."""
        return [await self.get_at(i) for i in range(await self.count())]

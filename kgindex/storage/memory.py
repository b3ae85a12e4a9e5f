"""In-memory index store for testing and development.

`InMemoryIndexStore` keeps three lists of documents:

- **writer**: the live state every `insert` and `replace_by_key` edits
- **committed**: the state as of the last `commit`
- **reader**: the snapshot reads are served from, taken from the committed
  state when the store is created and on `refresh`

This mirrors a segment-based search index where a searcher opened before a
pass keeps seeing the same documents at the same ordinals while the writer
deletes and appends underneath it.

**Not recommended for production**: nothing is persisted and all documents
must fit in memory.
"""

from typing import Iterable

from kgindex.document import IndexDocument
from kgindex.fields import ResourceField
from kgindex.storage.interfaces import IndexStoreInterface


class InMemoryIndexStore(IndexStoreInterface):
    """List-backed index store.

    Lookups by key are O(n). Not thread-safe.

    Example:
        ```python
        store = InMemoryIndexStore([IndexDocument.from_pairs([("uri", "Berlin")])])
        await store.replace_by_key("Berlin", updated_doc)
        await store.commit()
        await store.refresh()
        ```
    """

    def __init__(
        self,
        documents: Iterable[IndexDocument] = (),
        key_field: str = ResourceField.URI.value,
    ) -> None:
        """Initialize a store whose committed state is `documents`.

        Args:
            documents: Documents the index starts with, in ordinal order.
            key_field: Name of the field identifying a document's resource.
        """
        self._key_field = key_field
        self._writer: list[IndexDocument] = list(documents)
        self._committed: list[IndexDocument] = list(self._writer)
        self._reader: list[IndexDocument] = list(self._committed)
        self._dirty = False
        self.segment_count = 1 if self._writer else 0
        self.commit_count = 0

    @property
    def key_field(self) -> str:
        return self._key_field

    @property
    def location(self) -> str:
        return "memory"

    @property
    def pending(self) -> bool:
        """Whether the writer holds changes not yet committed."""
        return self._dirty

    def committed_documents(self) -> list[IndexDocument]:
        """Return the committed state, independent of the reader snapshot."""
        return list(self._committed)

    async def count(self) -> int:
        return len(self._reader)

    async def lookup_by_key(self, key: str) -> list[IndexDocument]:
        return [doc for doc in self._reader if doc.get(self._key_field) == key]

    async def get_at(self, ordinal: int) -> IndexDocument:
        if ordinal < 0 or ordinal >= len(self._reader):
            raise IndexError(f"ordinal {ordinal} outside index of {len(self._reader)} documents")
        return self._reader[ordinal]

    async def insert(self, document: IndexDocument) -> None:
        self._writer.append(document)
        self._dirty = True

    async def replace_by_key(self, key: str, document: IndexDocument) -> None:
        self._writer = [doc for doc in self._writer if doc.get(self._key_field) != key]
        self._writer.append(document)
        self._dirty = True

    async def commit(self) -> None:
        """Make the writer state durable. Each commit carrying writes adds a segment."""
        if self._dirty:
            self.segment_count += 1
        self._committed = list(self._writer)
        self._dirty = False
        self.commit_count += 1

    async def consolidate(self, target_segments: int) -> None:
        if target_segments < 1:
            raise ValueError(f"target_segments must be >= 1, got {target_segments}")
        self.segment_count = min(self.segment_count, target_segments)

    async def refresh(self) -> None:
        self._reader = list(self._committed)

    def rollback(self) -> None:
        """Discard uncommitted writes, as a crash before the next commit would."""
        self._writer = list(self._committed)
        self._dirty = False

"""Test fixtures and helpers for index enrichment tests.

This module provides:
- `make_document`, a factory for index documents keyed by URI
- `FailingIndexStore`, an in-memory store that fails on a chosen write
- Pytest fixtures for in-memory and SQLite stores and for enrichers with a
  small commit batch so intermediate commits happen in tests
"""

from typing import Sequence

import pytest

from kgindex.commit_policy import BatchCommitPolicy
from kgindex.config import EnricherConfig
from kgindex.document import IndexDocument
from kgindex.enricher import IndexEnricher
from kgindex.errors import StoreUnavailableError
from kgindex.fields import ResourceField
from kgindex.storage.interfaces import IndexStoreInterface
from kgindex.storage.memory import InMemoryIndexStore
from kgindex.storage.sqlite import SQLiteIndexStore


def make_document(uri: str | None, **fields: object) -> IndexDocument:
    """Create a document with a `uri` field (omitted when None) followed by `fields`.

    List or tuple values become repeated fields.
    """
    pairs: list[tuple[str, object]] = []
    if uri is not None:
        pairs.append((ResourceField.URI.value, uri))
    for name, value in fields.items():
        if isinstance(value, (list, tuple)):
            pairs.extend((name, v) for v in value)
        else:
            pairs.append((name, value))
    return IndexDocument.from_pairs(pairs)


def make_enricher(store: IndexStoreInterface, docs_before_flush: int = 2, **config) -> IndexEnricher:
    """Create an enricher with a small commit batch."""
    return IndexEnricher(
        store,
        EnricherConfig(key_field=store.key_field, docs_before_flush=docs_before_flush, **config),
    )


async def documents_for(store: IndexStoreInterface, key: str) -> Sequence[IndexDocument]:
    """Refresh the reader and return the committed documents under `key`."""
    await store.refresh()
    return await store.lookup_by_key(key)


class FailingIndexStore(InMemoryIndexStore):
    """In-memory store whose `fail_on`-th call to `replace_by_key` raises."""

    def __init__(self, documents: Sequence[IndexDocument], fail_on: int) -> None:
        super().__init__(documents)
        self.fail_on = fail_on
        self.replace_calls = 0

    async def replace_by_key(self, key: str, document: IndexDocument) -> None:
        self.replace_calls += 1
        if self.replace_calls == self.fail_on:
            raise StoreUnavailableError(f"disk went away while replacing {key!r}")
        await super().replace_by_key(key, document)


@pytest.fixture
def sample_documents() -> list[IndexDocument]:
    """Three occurrences of three distinct resources."""
    return [
        make_document("Berlin", surface_form="Berlin", context="She moved to Berlin in 1990.", uri_count=12),
        make_document("Paris", surface_form="Paris", context="Paris hosted the games.", uri_count=30),
        make_document("Apple_Inc.", surface_form="Apple", context="Apple released a phone.", uri_count=7),
    ]


@pytest.fixture
def memory_store(sample_documents: list[IndexDocument]) -> InMemoryIndexStore:
    return InMemoryIndexStore(sample_documents)


@pytest.fixture
def empty_store() -> InMemoryIndexStore:
    return InMemoryIndexStore()


@pytest.fixture
def sqlite_store():
    """In-memory SQLite store, closed after the test."""
    store = SQLiteIndexStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def small_batches() -> BatchCommitPolicy:
    return BatchCommitPolicy(docs_before_flush=2)

"""
SQLite implementation of the index store interface.

Documents are rows of the ``index_document`` table. Deletion is a tombstone:
`replace_by_key` stamps the rows it removes with the generation of the pending
commit instead of deleting them, so a reader snapshot taken at an earlier
generation keeps seeing the same rows at the same ordinals. A row is visible
at generation ``g`` when ``created_gen <= g`` and it is not tombstoned at or
before ``g``. `consolidate` physically purges committed tombstones.
"""

import json
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, col, create_engine, select

from kgindex.document import IndexDocument
from kgindex.errors import StoreUnavailableError
from kgindex.fields import ResourceField
from kgindex.storage.interfaces import IndexStoreInterface


class IndexDocumentRow(SQLModel, table=True):
    """One stored index document."""

    __tablename__ = "index_document"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: Optional[str] = Field(default=None, index=True, description="Value of the key field, if the document has one")
    fields_json: str = Field(description="JSON list of [name, value] pairs in stored order")
    created_gen: int = Field(index=True, description="Generation whose commit made the row visible")
    deleted_gen: Optional[int] = Field(default=None, index=True, description="Generation whose commit removed the row")


@contextmanager
def _store_errors(operation: str, location: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"{operation} failed on {location}: {e}") from e


class SQLiteIndexStore(IndexStoreInterface):
    """
    SQLite-backed index store.

    Use ``":memory:"`` as `db_path` for a throwaway database in tests.
    """

    def __init__(
        self,
        db_path: str,
        key_field: str = ResourceField.URI.value,
        check_same_thread: bool = True,
    ):
        self._db_path = db_path
        self._key_field = key_field
        connect_args = {"check_same_thread": check_same_thread}
        with _store_errors("open", db_path):
            self.engine = create_engine(f"sqlite:///{db_path}", connect_args=connect_args)
            SQLModel.metadata.create_all(self.engine)
            self._session = Session(self.engine)
            self._generation = self._latest_generation()
        self._reader_generation = self._generation
        self._reader_ids: list[int] | None = None
        self._dirty = False

    @property
    def key_field(self) -> str:
        return self._key_field

    @property
    def location(self) -> str:
        return f"sqlite:///{self._db_path}"

    @property
    def generation(self) -> int:
        """Number of commits that carried writes since the database was created."""
        return self._generation

    def _latest_generation(self) -> int:
        created = self._session.exec(select(func.max(IndexDocumentRow.created_gen))).one()
        deleted = self._session.exec(select(func.max(IndexDocumentRow.deleted_gen))).one()
        return max(created or 0, deleted or 0)

    def _visible_at(self, generation: int) -> tuple:
        return (
            col(IndexDocumentRow.created_gen) <= generation,
            or_(col(IndexDocumentRow.deleted_gen).is_(None), col(IndexDocumentRow.deleted_gen) > generation),
        )

    def _snapshot_ids(self) -> list[int]:
        if self._reader_ids is None:
            statement = (
                select(IndexDocumentRow.id)
                .where(*self._visible_at(self._reader_generation))
                .order_by(col(IndexDocumentRow.id))
            )
            self._reader_ids = [row_id for row_id in self._session.exec(statement).all() if row_id is not None]
        return self._reader_ids

    def _to_row(self, document: IndexDocument) -> IndexDocumentRow:
        return IndexDocumentRow(
            key=document.get(self._key_field),
            fields_json=json.dumps(document.pairs()),
            created_gen=self._generation + 1,
        )

    @staticmethod
    def _to_document(row: IndexDocumentRow) -> IndexDocument:
        return IndexDocument.from_pairs((name, value) for name, value in json.loads(row.fields_json))

    async def count(self) -> int:
        with _store_errors("count", self.location):
            return len(self._snapshot_ids())

    async def lookup_by_key(self, key: str) -> list[IndexDocument]:
        statement = (
            select(IndexDocumentRow)
            .where(IndexDocumentRow.key == key, *self._visible_at(self._reader_generation))
            .order_by(col(IndexDocumentRow.id))
        )
        with _store_errors("lookup", self.location):
            rows = self._session.exec(statement).all()
        return [self._to_document(row) for row in rows]

    async def get_at(self, ordinal: int) -> IndexDocument:
        with _store_errors("fetch", self.location):
            ids = self._snapshot_ids()
            if ordinal < 0 or ordinal >= len(ids):
                raise IndexError(f"ordinal {ordinal} outside index of {len(ids)} documents")
            row = self._session.get(IndexDocumentRow, ids[ordinal])
        if row is None:
            raise StoreUnavailableError(f"document at ordinal {ordinal} vanished from {self.location}")
        return self._to_document(row)

    async def insert(self, document: IndexDocument) -> None:
        with _store_errors("insert", self.location):
            self._session.add(self._to_row(document))
        self._dirty = True

    async def replace_by_key(self, key: str, document: IndexDocument) -> None:
        pending_generation = self._generation + 1
        statement = select(IndexDocumentRow).where(
            IndexDocumentRow.key == key,
            col(IndexDocumentRow.deleted_gen).is_(None),
        )
        with _store_errors("replace", self.location):
            for row in self._session.exec(statement).all():
                row.deleted_gen = pending_generation
                self._session.add(row)
            self._session.add(self._to_row(document))
        self._dirty = True

    async def commit(self) -> None:
        with _store_errors("commit", self.location):
            self._session.commit()
        if self._dirty:
            self._generation += 1
            self._dirty = False

    async def consolidate(self, target_segments: int) -> None:
        """Purge committed tombstones, VACUUM the file and reopen the reader.

        SQLite has no segments; `target_segments` is only validated.
        """
        if target_segments < 1:
            raise ValueError(f"target_segments must be >= 1, got {target_segments}")
        await self.commit()
        statement = select(IndexDocumentRow).where(
            col(IndexDocumentRow.deleted_gen).is_not(None),
            col(IndexDocumentRow.deleted_gen) <= self._generation,
        )
        with _store_errors("consolidate", self.location):
            for row in self._session.exec(statement).all():
                self._session.delete(row)
            self._session.commit()
            with self.engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
                conn.exec_driver_sql("VACUUM")
        await self.refresh()

    async def refresh(self) -> None:
        self._reader_generation = self._generation
        self._reader_ids = None

    def rollback(self) -> None:
        """Discard uncommitted writes."""
        with _store_errors("rollback", self.location):
            self._session.rollback()
        self._dirty = False

    def close(self) -> None:
        """
        Close connections and clean up resources.
        """
        self._session.close()
        self.engine.dispose()

"""Enrichment of an existing resource index.

`IndexEnricher` adds derived attributes to the documents of an index that was
populated beforehand. Every operation has the same shape: find candidate
documents (by key lookup or by scanning every ordinal of the reader
snapshot), splice the new values into the stored document, write it back
with `replace_by_key`, and commit in batches.

Operations:
    - enrich_with_priors: keyed prior merge; unknown keys get a new document
    - enrich_with_priors_by_scan: prior merge by walking the whole index
    - enrich_with_surface_forms: append alternate mentions
    - enrich_with_types: append ontology type tags
    - unstore: drop named fields from every document

`replace_by_key` removes *every* document under the key before inserting the
one it is given. When several documents share a key, each write collapses
them again, so the last document written for a key is the only one left.
"""

from typing import Callable, Iterable, Mapping, Sequence

from pydantic import BaseModel, Field

from kgindex.builders import format_prior, unseen_resource_document
from kgindex.commit_policy import BatchCommitPolicy
from kgindex.config import EnricherConfig
from kgindex.document import FieldName, IndexDocument, field_name
from kgindex.errors import EmptyIndexError
from kgindex.fields import ResourceField
from kgindex.logging import setup_logging
from kgindex.resource import OntologyType, SurfaceForm
from kgindex.storage.interfaces import IndexStoreInterface

MergeFn = Callable[[str, IndexDocument], IndexDocument]
WrittenFn = Callable[[str], None]


class EnrichmentResult(BaseModel, frozen=True):
    """Outcome of one enrichment or unstore pass."""

    operation: str = Field(description="Name of the operation that ran.")
    documents_seen: int = Field(default=0, ge=0, description="Stored documents read during the pass.")
    updated: int = Field(default=0, ge=0, description="Documents written back with changed content.")
    inserted: int = Field(default=0, ge=0, description="New documents added for unknown keys.")
    skipped: int = Field(default=0, ge=0, description="Documents skipped for lacking the key field.")
    commits: int = Field(default=0, ge=0, description="Commits issued, including the final one.")
    unmatched: tuple[str, ...] = Field(
        default=(),
        description="Input keys that matched no document in the pass.",
    )


class IndexEnricher:
    """Merges priors, surface forms and types into an existing index.

    The enricher holds the store's writer for the duration of each pass;
    passes must not run concurrently against the same store. Store failures
    propagate unchanged and are not retried; batches committed before the
    failure stay committed.

    Example:
        ```python
        store = SQLiteIndexStore("index.db")
        enricher = IndexEnricher(store, load_enricher_config())

        priors = load_priors("priors.tsv")
        result = await enricher.enrich_with_priors(priors)
        print(result.inserted, result.updated)
        ```
    """

    def __init__(
        self,
        store: IndexStoreInterface,
        config: EnricherConfig | None = None,
        commit_policy: BatchCommitPolicy | None = None,
    ):
        """Initialize the enricher.

        Args:
            store: Index to enrich.
            config: Pass settings; defaults to `EnricherConfig` keyed on the store's key field.
            commit_policy: Batch commit policy; defaults to the one built from `config`.
        """
        self.store = store
        self.config = config or EnricherConfig(key_field=store.key_field)
        if self.config.key_field != store.key_field:
            raise ValueError(
                f"config key field {self.config.key_field!r} does not match store key field {store.key_field!r}"
            )
        self.commit_policy = commit_policy or self.config.commit_policy()
        self.logger = setup_logging()

    @property
    def key_field(self) -> str:
        return self.store.key_field

    async def _require_documents(self, action: str) -> int:
        # Each pass reads what earlier passes and writers committed
        await self.store.refresh()
        size = await self.store.count()
        if size == 0:
            raise EmptyIndexError(
                f"index in {self.store.location} contains no entries; {action} only works on an existing index"
            )
        return size

    async def _checkpoint(self, processed: int) -> int:
        if not self.commit_policy.should_flush(processed):
            return 0
        self.logger.info(f"  processed {processed} documents. committing...")
        await self.store.commit()
        self.logger.info("  done.")
        return 1

    async def _finish(self, processed: int) -> int:
        self.logger.info(f"Processed {processed} documents. Final commit...")
        await self.store.commit()
        return 1

    def _report(self, result: EnrichmentResult) -> EnrichmentResult:
        self.logger.info({"message": f"{result.operation} finished on {self.store.location}", **result.model_dump()})
        return result

    async def _scan(
        self,
        operation: str,
        size: int,
        merge: MergeFn,
        written: WrittenFn | None = None,
    ) -> EnrichmentResult:
        """Visit ordinals 0..size-1, merge each keyed document and replace it under its key.

        `written` is called with the key once the replacement has been handed
        to the store, so input entries are consumed only after their write.
        """
        updated = skipped = commits = processed = 0
        for ordinal in range(size):
            document = await self.store.get_at(ordinal)
            key = document.get(self.key_field)
            if key is None:
                self.logger.error(f"Document {ordinal} has no {self.key_field} field. Skipping.")
                skipped += 1
                continue
            merged = merge(key, document)
            await self.store.replace_by_key(key, merged)
            if written is not None:
                written(key)
            if merged != document:
                updated += 1
            processed += 1
            commits += await self._checkpoint(processed)
        commits += await self._finish(processed)
        return EnrichmentResult(
            operation=operation,
            documents_seen=size,
            updated=updated,
            skipped=skipped,
            commits=commits,
        )

    @staticmethod
    def _validate_priors(priors: Mapping[str, float]) -> None:
        for key, weight in priors.items():
            try:
                format_prior(weight)
            except (TypeError, ValueError) as e:
                raise ValueError(f"invalid prior for {key!r}: {e}") from e

    async def enrich_with_priors(self, priors: dict[str, float] | None) -> EnrichmentResult:
        """Set the prior of every document under each key of `priors`.

        A key with no document gets a new one with support 0, the given
        prior and its display name as surface form (a resource known to
        exist that the primary corpus never mentioned). Entries are popped
        from `priors` once their writes have been handed to the store, so an
        entry whose write raised is still in `priors` afterwards.

        Raises:
            EmptyIndexError: the index has no documents.
            ValueError: a weight is negative or not a number.
        """
        await self._require_documents("adding priors")
        self.logger.info(f"Adding URI priors to index {self.store.location}...")
        if not priors:
            self.logger.info("No URI priors provided. Refusing to invent them.")
            return EnrichmentResult(operation="priors")
        self._validate_priors(priors)

        seen = updated = inserted = commits = processed = 0
        for key in list(priors):
            weight = priors[key]
            documents = await self.store.lookup_by_key(key)
            if not documents:
                await self.store.insert(unseen_resource_document(key, weight))
                inserted += 1
            else:
                prior = format_prior(weight)
                for document in documents:
                    merged = document.set(ResourceField.URI_PRIOR, prior)
                    await self.store.replace_by_key(key, merged)
                    if merged != document:
                        updated += 1
                seen += len(documents)
            del priors[key]
            processed += 1
            commits += await self._checkpoint(processed)
        commits += await self._finish(processed)
        return self._report(
            EnrichmentResult(
                operation="priors",
                documents_seen=seen,
                updated=updated,
                inserted=inserted,
                commits=commits,
            )
        )

    async def enrich_with_priors_by_scan(self, priors: dict[str, float] | None) -> EnrichmentResult:
        """Walk the whole index and set the prior of each document whose key is in `priors`.

        A matched entry is popped from `priors` once its document has been
        written; later documents sharing the key in the same pass get the
        same prior. Entries left in `priors` afterwards matched nothing and are
        reported in `unmatched`; no document is created for them. If the
        store raises, the entry being written stays in `priors`.
        """
        size = await self._require_documents("adding priors")
        self.logger.info(f"Adding URI priors to index {self.store.location} by scanning {size} documents...")
        if not priors:
            self.logger.info("No URI priors provided. Refusing to invent them.")
            return EnrichmentResult(operation="priors_by_scan")
        self._validate_priors(priors)

        applied: dict[str, str] = {}

        def merge(key: str, document: IndexDocument) -> IndexDocument:
            prior = applied.get(key)
            if prior is None and key in priors:
                prior = format_prior(priors[key])
            if prior is None:
                return document
            return document.set(ResourceField.URI_PRIOR, prior)

        def consume(key: str) -> None:
            if key in priors:
                applied[key] = format_prior(priors.pop(key))

        result = await self._scan("priors_by_scan", size, merge, consume)
        if priors:
            self.logger.debug(f"{len(priors)} priors matched no document and were not applied.")
        return self._report(result.model_copy(update={"unmatched": tuple(priors)}))

    async def enrich_with_surface_forms(
        self,
        surface_forms: dict[str, Iterable[SurfaceForm]] | None,
    ) -> EnrichmentResult:
        """Append alternate surface forms to the documents of each key.

        The forms of a key are popped once the first document with that key
        has been written, so only that document receives them. Keys the scan
        never reaches stay in `surface_forms` and are reported in `unmatched`.
        If the store raises, the key being written stays in `surface_forms`.
        """
        size = await self._require_documents("adding surface forms")
        self.logger.info(f"Adding surface forms to index {self.store.location}...")
        if not surface_forms:
            self.logger.info("No surface forms provided. Nothing to add.")
            return EnrichmentResult(operation="surface_forms")

        def merge(key: str, document: IndexDocument) -> IndexDocument:
            extra = surface_forms.get(key)
            if extra is None:
                return document
            for surface_form in extra:
                document = document.add(ResourceField.SURFACE_FORM, surface_form.name)
            return document

        def consume(key: str) -> None:
            surface_forms.pop(key, None)

        result = await self._scan("surface_forms", size, merge, consume)
        return self._report(result.model_copy(update={"unmatched": tuple(surface_forms)}))

    async def enrich_with_types(
        self,
        types: Mapping[str, Iterable[OntologyType]] | None,
    ) -> EnrichmentResult:
        """Append ontology types to every document of each key.

        `types` is only read: every document sharing a key receives the full
        type set, and the last one scanned is the one left in the index.
        """
        size = await self._require_documents("adding types")
        self.logger.info(f"Adding types to index {self.store.location}...")
        if not types:
            self.logger.info("No types provided. Nothing to add.")
            return EnrichmentResult(operation="types")

        matched: set[str] = set()

        def merge(key: str, document: IndexDocument) -> IndexDocument:
            key_types = types.get(key)
            if key_types is None:
                return document
            matched.add(key)
            for ontology_type in key_types:
                document = document.add(ResourceField.TYPE, ontology_type.name)
            return document

        result = await self._scan("types", size, merge)
        unmatched = tuple(key for key in types if key not in matched)
        return self._report(result.model_copy(update={"unmatched": unmatched}))

    async def unstore(
        self,
        fields: Sequence[FieldName] | None,
        consolidate_segments: int | None = None,
    ) -> EnrichmentResult:
        """Remove the named fields from every document of the index.

        This is the only operation that drops stored data. After the final
        commit, if `consolidate_segments` (default: the configured value) is
        positive, the store is consolidated to that many segments and
        committed again.

        Raises:
            EmptyIndexError: the index has no documents.
            ValueError: `fields` names the key field, or `consolidate_segments` is negative.
        """
        size = await self._require_documents("unstoring fields")
        names = list(dict.fromkeys(field_name(f) for f in fields or ()))
        if not names:
            self.logger.info("No fields to unstore. Nothing to do.")
            return EnrichmentResult(operation="unstore")
        if self.key_field in names:
            raise ValueError(f"cannot unstore the key field {self.key_field!r}")
        segments = self.config.consolidate_segments if consolidate_segments is None else consolidate_segments
        if segments < 0:
            raise ValueError(f"consolidate_segments must be >= 0, got {segments}")

        self.logger.info(f"Unstoring {names} in index {self.store.location}...")
        result = await self._scan("unstore", size, lambda key, document: document.without(names))
        if segments > 0:
            self.logger.info(f"Consolidating to {segments} segments...")
            await self.store.consolidate(segments)
            await self.store.commit()
            result = result.model_copy(update={"commits": result.commits + 1})
        self.logger.info("Done.")
        return self._report(result)

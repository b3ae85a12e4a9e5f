"""Tests for the keyed and scan prior merges.

This module verifies:
- The empty-index precondition and empty-input no-ops
- Keyed merge: in-place update, new document for unknown keys, N -> 1 collapse
- Scan merge: map consumption, skipped documents, no inserts for leftovers
- Batch commits and store failure propagation
"""

import pytest

from kgindex.builders import parse_prior
from kgindex.commit_policy import BatchCommitPolicy
from kgindex.config import EnricherConfig
from kgindex.enricher import IndexEnricher
from kgindex.errors import EmptyIndexError, StoreUnavailableError
from kgindex.fields import ResourceField
from kgindex.storage.memory import InMemoryIndexStore
from kgindex.storage.sqlite import SQLiteIndexStore

from tests.conftest import FailingIndexStore, documents_for, make_document, make_enricher


def _prior(document) -> float | None:
    return parse_prior(document.get(ResourceField.URI_PRIOR))


class TestPreconditions:
    """Empty index and empty input handling shared by both variants."""

    @pytest.mark.parametrize("operation", ["enrich_with_priors", "enrich_with_priors_by_scan"])
    async def test_empty_index_rejected(self, empty_store, operation):
        enricher = make_enricher(empty_store)

        with pytest.raises(EmptyIndexError, match="contains no entries"):
            await getattr(enricher, operation)({"R1": 0.5})
        assert empty_store.committed_documents() == []
        assert empty_store.commit_count == 0

    async def test_empty_index_rejected_even_without_input(self, empty_store):
        with pytest.raises(ValueError):
            await make_enricher(empty_store).enrich_with_priors(None)

    @pytest.mark.parametrize("operation", ["enrich_with_priors", "enrich_with_priors_by_scan"])
    @pytest.mark.parametrize("priors", [None, {}])
    async def test_empty_input_is_noop(self, memory_store, sample_documents, operation, priors):
        result = await getattr(make_enricher(memory_store), operation)(priors)

        assert result.documents_seen == result.updated == result.inserted == result.commits == 0
        assert not memory_store.pending
        assert memory_store.commit_count == 0
        assert memory_store.committed_documents() == sample_documents

    @pytest.mark.parametrize("operation", ["enrich_with_priors", "enrich_with_priors_by_scan"])
    async def test_negative_weight_rejected_before_writing(self, memory_store, operation):
        with pytest.raises(ValueError, match="invalid prior for 'Paris'"):
            await getattr(make_enricher(memory_store), operation)({"Berlin": 0.5, "Paris": -1.0})

        assert not memory_store.pending

    def test_config_key_field_must_match_store(self, memory_store):
        with pytest.raises(ValueError, match="does not match"):
            IndexEnricher(memory_store, EnricherConfig(key_field="resource"))


class TestKeyedPriors:
    """enrich_with_priors looks each key up directly."""

    async def test_scenario_single_document_gets_prior(self):
        store = InMemoryIndexStore([make_document("R1", context="some text")])

        result = await make_enricher(store).enrich_with_priors({"R1": 0.7})

        docs = await documents_for(store, "R1")
        assert await store.count() == 1
        assert len(docs) == 1
        assert _prior(docs[0]) == 0.7
        assert result.updated == 1
        assert result.inserted == 0

    async def test_update_adds_at_most_one_field(self, memory_store, sample_documents):
        berlin_before = sample_documents[0]

        await make_enricher(memory_store).enrich_with_priors({"Berlin": 0.25})

        [berlin_after] = await documents_for(memory_store, "Berlin")
        assert len(berlin_after) == len(berlin_before) + 1
        assert berlin_after.without([ResourceField.URI_PRIOR]) == berlin_before
        assert await memory_store.count() == len(sample_documents)

    async def test_existing_prior_is_overwritten_not_duplicated(self):
        store = InMemoryIndexStore([make_document("R1", uri_prior="0.1")])

        await make_enricher(store).enrich_with_priors({"R1": 0.9})

        [doc] = await documents_for(store, "R1")
        assert doc.get_all(ResourceField.URI_PRIOR) == ("0.9",)

    async def test_unknown_key_inserts_unseen_resource(self, memory_store, sample_documents):
        result = await make_enricher(memory_store).enrich_with_priors({"Tegel_Airport": 0.05})

        [doc] = await documents_for(memory_store, "Tegel_Airport")
        assert await memory_store.count() == len(sample_documents) + 1
        assert doc.get(ResourceField.URI_COUNT) == "0"
        assert _prior(doc) == 0.05
        assert doc.get(ResourceField.SURFACE_FORM) == "Tegel Airport"
        assert result.inserted == 1
        assert result.unmatched == ()

    async def test_duplicate_key_collapses_to_one(self):
        store = InMemoryIndexStore(
            [
                make_document("R2", context="first"),
                make_document("Other"),
                make_document("R2", context="second"),
            ]
        )

        result = await make_enricher(store).enrich_with_priors({"R2": 0.3})

        docs = await documents_for(store, "R2")
        assert len(docs) == 1
        assert docs[0].get(ResourceField.CONTEXT) == "second"
        assert _prior(docs[0]) == 0.3
        assert await store.count() == 2
        assert result.documents_seen == 2
        assert result.updated == 2

    async def test_map_is_consumed(self, memory_store):
        priors = {"Berlin": 0.2, "Nowhere": 0.1}

        await make_enricher(memory_store).enrich_with_priors(priors)

        assert priors == {}

    async def test_commits_per_processed_entry(self, memory_store):
        priors = {"Berlin": 0.1, "Paris": 0.2, "Apple_Inc.": 0.3, "Rome": 0.4, "Oslo": 0.5}

        result = await make_enricher(memory_store, docs_before_flush=2).enrich_with_priors(priors)

        # after entries 2 and 4, plus the final commit
        assert result.commits == 3
        assert memory_store.commit_count == 3

    async def test_explicit_commit_policy(self, memory_store, small_batches):
        enricher = IndexEnricher(memory_store, commit_policy=small_batches)

        result = await enricher.enrich_with_priors({"Berlin": 0.1, "Paris": 0.2})

        assert enricher.commit_policy is small_batches
        assert result.commits == 2

    async def test_unchanged_prior_is_not_counted_as_update(self):
        store = InMemoryIndexStore([make_document("R1", uri_prior="0.5")])

        result = await make_enricher(store).enrich_with_priors({"R1": 0.5})

        assert result.documents_seen == 1
        assert result.updated == 0

    async def test_failed_write_keeps_entry_for_retry(self):
        store = FailingIndexStore([make_document("Berlin"), make_document("Paris")], fail_on=1)
        priors = {"Berlin": 0.5, "Paris": 0.3}

        with pytest.raises(StoreUnavailableError):
            await make_enricher(store).enrich_with_priors(priors)

        assert priors == {"Berlin": 0.5, "Paris": 0.3}

    async def test_sqlite_backend(self, sqlite_store):
        for uri in ("R1", "R2", "R2"):
            await sqlite_store.insert(make_document(uri))
        await sqlite_store.commit()
        await sqlite_store.refresh()

        await make_enricher(sqlite_store).enrich_with_priors({"R1": 0.7, "R2": 0.3, "R3": 0.1})

        await sqlite_store.refresh()
        assert await sqlite_store.count() == 3
        for uri, prior in (("R1", 0.7), ("R2", 0.3), ("R3", 0.1)):
            [doc] = await sqlite_store.lookup_by_key(uri)
            assert _prior(doc) == prior


class TestScanPriors:
    """enrich_with_priors_by_scan walks every ordinal of the index."""

    async def test_scenario_shared_key_collapses_with_prior(self):
        store = InMemoryIndexStore([make_document("R2", context="a"), make_document("R2", context="b")])

        result = await make_enricher(store).enrich_with_priors_by_scan({"R2": 0.3})

        await store.refresh()
        assert await store.count() == 1
        [doc] = await store.lookup_by_key("R2")
        assert _prior(doc) == 0.3
        assert doc.get(ResourceField.CONTEXT) == "b"
        assert result.documents_seen == 2

    async def test_scenario_single_document(self):
        store = InMemoryIndexStore([make_document("R1")])

        await make_enricher(store).enrich_with_priors_by_scan({"R1": 0.7})

        [doc] = await documents_for(store, "R1")
        assert _prior(doc) == 0.7
        assert await store.count() == 1

    async def test_leftovers_stay_in_map_and_are_not_inserted(self, memory_store, sample_documents):
        priors = {"Paris": 0.4, "Atlantis": 0.9}

        result = await make_enricher(memory_store).enrich_with_priors_by_scan(priors)

        assert priors == {"Atlantis": 0.9}
        assert result.unmatched == ("Atlantis",)
        assert result.inserted == 0
        assert await documents_for(memory_store, "Atlantis") == []
        assert await memory_store.count() == len(sample_documents)

    async def test_documents_without_prior_are_unchanged(self, memory_store, sample_documents):
        result = await make_enricher(memory_store).enrich_with_priors_by_scan({"Paris": 0.4})

        [berlin] = await documents_for(memory_store, "Berlin")
        assert berlin == sample_documents[0]
        assert result.updated == 1

    async def test_missing_key_field_is_skipped(self):
        orphan = make_document(None, context="no uri here")
        store = InMemoryIndexStore([orphan, make_document("R1")])

        result = await make_enricher(store).enrich_with_priors_by_scan({"R1": 0.5})

        await store.refresh()
        assert result.skipped == 1
        assert await store.count() == 2
        assert (await store.get_at(0)) == orphan
        assert _prior((await store.lookup_by_key("R1"))[0]) == 0.5

    async def test_batch_commits(self):
        store = InMemoryIndexStore([make_document(f"R{i}") for i in range(5)])

        result = await make_enricher(store, docs_before_flush=2).enrich_with_priors_by_scan({"R0": 0.1})

        assert result.commits == 3

    async def test_failure_propagates_and_keeps_committed_batches(self):
        documents = [make_document(f"R{i}") for i in range(4)]
        store = FailingIndexStore(documents, fail_on=4)
        priors = {f"R{i}": 0.5 for i in range(4)}

        with pytest.raises(StoreUnavailableError):
            await make_enricher(store, docs_before_flush=2).enrich_with_priors_by_scan(priors)

        assert priors == {"R3": 0.5}
        store.rollback()
        committed = store.committed_documents()
        assert [_prior(d) for d in committed] == [None, None, 0.5, 0.5]
        assert [d.get("uri") for d in committed] == ["R2", "R3", "R0", "R1"]

    async def test_sqlite_backend_scenario(self, sqlite_store):
        for context in ("a", "b"):
            await sqlite_store.insert(make_document("R2", context=context))
        await sqlite_store.commit()
        await sqlite_store.refresh()

        await make_enricher(sqlite_store).enrich_with_priors_by_scan({"R2": 0.3})

        await sqlite_store.refresh()
        [doc] = await sqlite_store.lookup_by_key("R2")
        assert await sqlite_store.count() == 1
        assert _prior(doc) == 0.3


class TestDefaultConfig:
    """Enrichers built without explicit config."""

    async def test_default_policy_commits_once(self, memory_store):
        enricher = IndexEnricher(memory_store)

        result = await enricher.enrich_with_priors({"Berlin": 0.1})

        assert enricher.commit_policy == BatchCommitPolicy()
        assert result.commits == 1

    def test_store_key_field_is_used(self):
        store = InMemoryIndexStore([make_document(None, resource="Berlin")], key_field="resource")

        assert IndexEnricher(store).key_field == "resource"

    async def test_sqlite_store_key_field(self):
        store = SQLiteIndexStore(":memory:", key_field="resource")
        try:
            assert IndexEnricher(store).config.key_field == "resource"
        finally:
            store.close()

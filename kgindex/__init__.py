"""
Resource Index Enrichment - merge priors, surface forms and types into an existing index.

An index holds documents keyed by the URI of the resource they describe,
usually one document per observed occurrence. `IndexEnricher` augments such
an index in place, without rebuilding it, through a store implementing
`IndexStoreInterface`:

    from kgindex import IndexEnricher, load_priors
    from kgindex.storage import SQLiteIndexStore

    enricher = IndexEnricher(SQLiteIndexStore("index.db"))
    await enricher.enrich_with_priors(load_priors("priors.tsv"))
"""

from kgindex.commit_policy import BatchCommitPolicy, should_flush
from kgindex.config import EnricherConfig, load_enricher_config
from kgindex.document import DocumentField, IndexDocument
from kgindex.enricher import EnrichmentResult, IndexEnricher
from kgindex.errors import EmptyIndexError, IndexEnrichmentError, StoreUnavailableError
from kgindex.fields import ResourceField
from kgindex.loaders import load_priors, load_surface_forms, load_types
from kgindex.resource import OntologyType, Resource, ResourceOccurrence, SurfaceForm, surface_form_from_uri

__all__ = [
    "IndexEnricher",
    "EnrichmentResult",
    "EnricherConfig",
    "load_enricher_config",
    "BatchCommitPolicy",
    "should_flush",
    "IndexDocument",
    "DocumentField",
    "ResourceField",
    "Resource",
    "SurfaceForm",
    "OntologyType",
    "ResourceOccurrence",
    "surface_form_from_uri",
    "load_priors",
    "load_surface_forms",
    "load_types",
    "IndexEnrichmentError",
    "EmptyIndexError",
    "StoreUnavailableError",
]

__version__ = "0.1.0"

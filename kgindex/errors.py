"""Exceptions raised by index enrichment passes."""


class IndexEnrichmentError(Exception):
    """Base exception for index enrichment failures."""


class EmptyIndexError(IndexEnrichmentError, ValueError):
    """Raised when an enrichment pass is started against an index with no documents."""


class StoreUnavailableError(IndexEnrichmentError):
    """Raised by a store backend when a read, write, commit or consolidation fails."""

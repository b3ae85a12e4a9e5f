"""Stored field names of a resource index document."""

from enum import Enum


class ResourceField(str, Enum):
    """Names of the fields an index document may carry."""

    URI = "uri"
    """Identifier of the resource the document describes. Not unique per document."""

    URI_PRIOR = "uri_prior"
    """Prior weight of the resource (non-negative real number)."""

    URI_COUNT = "uri_count"
    """Support: how often the resource was observed in the primary corpus."""

    SURFACE_FORM = "surface_form"
    """Textual mention of the resource. Multi-valued."""

    CONTEXT = "context"
    """Text surrounding an occurrence of the resource."""

    TYPE = "type"
    """Ontology type tag of the resource. Multi-valued."""

    def __str__(self) -> str:
        return self.value

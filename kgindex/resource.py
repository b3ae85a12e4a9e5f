"""Resource value models used to build and enrich index documents.

A resource is a real-world thing identified by a URI. The index holds one or
more documents per resource, typically one per observed occurrence. The
models here describe the inputs the enricher merges into those documents:

    - **Resource**: the URI plus its support count and optional prior weight
    - **SurfaceForm**: an alternate textual mention of a resource
    - **OntologyType**: a semantic type tag for a resource
    - **ResourceOccurrence**: a resource seen under a surface form in a context
"""

import re
from urllib.parse import unquote

from pydantic import BaseModel, Field, field_validator

_DISAMBIGUATOR = re.compile(r"\s*\([^()]*\)\s*$")


def _strip_nonempty(s: str, *, what: str) -> str:
    s2 = s.strip()
    if not s2:
        raise ValueError(f"{what} must be a non-empty string")
    return s2


class Resource(BaseModel, frozen=True):
    """A resource identified by its URI."""

    uri: str = Field(description="Identifier of the resource; the value of the key field.")
    support: int = Field(
        default=0,
        ge=0,
        description="Number of occurrences observed in the primary corpus. 0 means never observed.",
    )
    prior: float | None = Field(
        default=None,
        ge=0.0,
        description="Relative importance or frequency of the resource.",
    )

    @field_validator("uri")
    @classmethod
    def _uri_nonempty(cls, value: str) -> str:
        return _strip_nonempty(value, what="uri")


class SurfaceForm(BaseModel, frozen=True):
    """An alternate name under which a resource is mentioned."""

    name: str = Field(description="The mention text.")

    @field_validator("name")
    @classmethod
    def _name_nonempty(cls, value: str) -> str:
        return _strip_nonempty(value, what="surface form name")


class OntologyType(BaseModel, frozen=True):
    """A semantic type tag, e.g. ``Person`` or ``Place``."""

    name: str = Field(description="Type identifier as stored in the index.")

    @field_validator("name")
    @classmethod
    def _name_nonempty(cls, value: str) -> str:
        return _strip_nonempty(value, what="type name")


class ResourceOccurrence(BaseModel, frozen=True):
    """A resource observed under a surface form in some context."""

    resource: Resource
    surface_form: SurfaceForm
    context: str = Field(default="", description="Text surrounding the mention.")


def surface_form_from_uri(uri: str) -> SurfaceForm:
    """Derive the display-name surface form of a resource from its URI.

    Takes the last path segment, decodes percent-escapes, turns underscores
    into spaces and drops a trailing parenthesised disambiguator::

        surface_form_from_uri("http://dbpedia.org/resource/Berlin_(band)")
        # SurfaceForm(name='Berlin')
    """
    local_name = uri.rstrip("/").rsplit("/", 1)[-1]
    name = unquote(local_name).replace("_", " ")
    stripped = _DISAMBIGUATOR.sub("", name).strip()
    return SurfaceForm(name=stripped or name)

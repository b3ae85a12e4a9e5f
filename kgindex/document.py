"""Index document representation.

An `IndexDocument` is an ordered collection of named string fields as held
by the resource index. A field name may occur more than once (surface forms
and types are multi-valued). Documents are frozen pydantic models: every
edit returns a new document, which is then written back to the store under
its key.
"""

from typing import Iterable

from pydantic import BaseModel, Field

from kgindex.fields import ResourceField

FieldName = str | ResourceField


def field_name(name: FieldName) -> str:
    """Return the plain string name of a field."""
    return name.value if isinstance(name, ResourceField) else name


class DocumentField(BaseModel, frozen=True):
    """One stored (name, value) pair of a document."""

    name: str = Field(min_length=1, description="Field name.")
    value: str = Field(description="String form of the stored value.")


class IndexDocument(BaseModel):
    """An ordered, multi-valued field record stored in the index.

    Example:
        ```python
        doc = IndexDocument.from_pairs([("uri", "Berlin"), ("context", "... in Berlin ...")])
        doc = doc.set("uri_prior", 0.7).add("surface_form", "Berlin")
        doc.get("uri_prior")  # "0.7"
        ```
    """

    model_config = {"frozen": True}

    fields: tuple[DocumentField, ...] = Field(
        default=(),
        description="Stored fields in insertion order.",
    )

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[FieldName, object]]) -> "IndexDocument":
        """Build a document from (name, value) pairs, serializing values with str()."""
        return cls(fields=tuple(DocumentField(name=field_name(n), value=str(v)) for n, v in pairs))

    def pairs(self) -> list[tuple[str, str]]:
        return [(f.name, f.value) for f in self.fields]

    def get(self, name: FieldName) -> str | None:
        """Return the first value of a field, or None if the document lacks it."""
        key = field_name(name)
        for f in self.fields:
            if f.name == key:
                return f.value
        return None

    def get_all(self, name: FieldName) -> tuple[str, ...]:
        """Return every value of a field in stored order."""
        key = field_name(name)
        return tuple(f.value for f in self.fields if f.name == key)

    def has(self, name: FieldName) -> bool:
        return self.get(name) is not None

    def field_names(self) -> tuple[str, ...]:
        """Distinct field names in order of first appearance."""
        return tuple(dict.fromkeys(f.name for f in self.fields))

    def add(self, name: FieldName, value: object) -> "IndexDocument":
        """Append one more value for a field; existing values are kept."""
        new_field = DocumentField(name=field_name(name), value=str(value))
        return self.model_copy(update={"fields": self.fields + (new_field,)})

    def set(self, name: FieldName, value: object) -> "IndexDocument":
        """Overwrite the first value of a field, or append it if absent.

        Further values of the same field, if any, are left alone.
        """
        key = field_name(name)
        new_field = DocumentField(name=key, value=str(value))
        fields = list(self.fields)
        for i, f in enumerate(fields):
            if f.name == key:
                fields[i] = new_field
                return self.model_copy(update={"fields": tuple(fields)})
        return self.model_copy(update={"fields": self.fields + (new_field,)})

    def without(self, names: Iterable[FieldName]) -> "IndexDocument":
        """Drop every value of every named field."""
        drop = {field_name(n) for n in names}
        return self.model_copy(update={"fields": tuple(f for f in self.fields if f.name not in drop)})

    def __len__(self) -> int:
        return len(self.fields)

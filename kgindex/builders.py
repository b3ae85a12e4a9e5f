from __future__ import annotations

import math

from kgindex.document import IndexDocument
from kgindex.fields import ResourceField
from kgindex.resource import Resource, ResourceOccurrence, surface_form_from_uri


def format_prior(prior: float) -> str:
    """Serialize a prior weight for storage, rejecting negative or non-finite values."""
    value = float(prior)
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise ValueError(f"prior must be a finite non-negative number, got {prior!r}")
    return repr(value)


def parse_prior(value: str | None) -> float | None:
    """Read a stored prior back; None when the field is absent."""
    if value is None:
        return None
    return float(value)


def occurrence_to_document(occurrence: ResourceOccurrence) -> IndexDocument:
    """Build the stored form of a single resource occurrence."""
    resource = occurrence.resource
    pairs: list[tuple[ResourceField, object]] = [
        (ResourceField.URI, resource.uri),
        (ResourceField.URI_COUNT, resource.support),
        (ResourceField.SURFACE_FORM, occurrence.surface_form.name),
        (ResourceField.CONTEXT, occurrence.context),
    ]
    if resource.prior is not None:
        pairs.append((ResourceField.URI_PRIOR, format_prior(resource.prior)))
    return IndexDocument.from_pairs(pairs)


def unseen_resource_document(uri: str, prior: float) -> IndexDocument:
    """Document for a resource known to exist but never observed in the primary corpus.

    Support is 0, the surface form is the resource's display name and that
    name doubles as the only context.
    """
    resource = Resource(uri=uri, support=0, prior=prior)
    surface_form = surface_form_from_uri(resource.uri)
    occurrence = ResourceOccurrence(resource=resource, surface_form=surface_form, context=surface_form.name)
    return occurrence_to_document(occurrence)

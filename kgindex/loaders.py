"""Load enrichment maps from tab-separated files.

All files are UTF-8, one record per line. Blank lines and lines starting
with ``#`` are ignored. Malformed lines are logged and skipped.

    priors.tsv          uri<TAB>weight
    surface_forms.tsv   surface form<TAB>uri
    types.tsv           uri<TAB>type
"""

import math
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from kgindex.builders import parse_prior
from kgindex.logging import setup_logging
from kgindex.resource import OntologyType, SurfaceForm

logger = setup_logging()

T = TypeVar("T")


def _records(path: str | Path) -> Iterator[tuple[int, list[str]]]:
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip("\r\n")
            if not line.strip() or line.startswith("#"):
                continue
            parts = line.split("\t")
            if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
                logger.warning(f"{path}:{line_number}: expected two tab-separated columns, skipping")
                continue
            yield line_number, [p.strip() for p in parts]


def load_priors(path: str | Path) -> dict[str, float]:
    """Read ``uri<TAB>weight`` lines. A later line for the same URI wins."""
    priors: dict[str, float] = {}
    for line_number, (uri, raw_weight) in _records(path):
        try:
            weight = parse_prior(raw_weight)
        except ValueError:
            logger.warning(f"{path}:{line_number}: weight {raw_weight!r} is not a number, skipping")
            continue
        if weight is None or not math.isfinite(weight) or weight < 0:
            logger.warning(f"{path}:{line_number}: weight {raw_weight!r} is not a finite non-negative number, skipping")
            continue
        priors[uri] = weight
    logger.debug({"message": f"Loaded priors from {path}", "entries": len(priors)})
    return priors


def _grouped(path: str | Path, key_column: int, make: Callable[[str], T]) -> dict[str, list[T]]:
    grouped: dict[str, list[T]] = {}
    for _, columns in _records(path):
        key, raw = columns[key_column], columns[1 - key_column]
        item = make(raw)
        items = grouped.setdefault(key, [])
        if item not in items:
            items.append(item)
    logger.debug({"message": f"Loaded {path}", "keys": len(grouped), "values": sum(map(len, grouped.values()))})
    return grouped


def load_surface_forms(path: str | Path) -> dict[str, list[SurfaceForm]]:
    """Read ``surface form<TAB>uri`` lines into uri -> ordered distinct surface forms."""
    return _grouped(path, 1, lambda name: SurfaceForm(name=name))


def load_types(path: str | Path) -> dict[str, list[OntologyType]]:
    """Read ``uri<TAB>type`` lines into uri -> ordered distinct types."""
    return _grouped(path, 0, lambda name: OntologyType(name=name))

"""Load enricher configuration from TOML (e.g. kgindex.toml).

The config file is looked up in order:
  1. The path passed to `load_enricher_config` (if any)
  2. Path in KGINDEX_CONFIG env var (if set)
  3. kgindex.toml in the current working directory

Only the ``[enricher]`` table is read. If no file is found, built-in defaults
are used.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from kgindex.commit_policy import DEFAULT_DOCS_BEFORE_FLUSH, BatchCommitPolicy
from kgindex.fields import ResourceField

CONFIG_ENV_VAR = "KGINDEX_CONFIG"
CONFIG_FILE_NAME = "kgindex.toml"


class EnricherConfig(BaseModel):
    """Settings for an enrichment pass."""

    model_config = {"frozen": True, "extra": "ignore"}

    key_field: str = Field(
        default=ResourceField.URI.value,
        min_length=1,
        description="Field whose value identifies the resource a document describes.",
    )
    docs_before_flush: int = Field(
        default=DEFAULT_DOCS_BEFORE_FLUSH,
        ge=0,
        description="Commit after every N processed items (0 = final commit only).",
    )
    consolidate_segments: int = Field(
        default=0,
        ge=0,
        description="Segment target for consolidation after unstore (0 = do not consolidate).",
    )

    def commit_policy(self) -> BatchCommitPolicy:
        return BatchCommitPolicy(docs_before_flush=self.docs_before_flush)


def _config_paths(path: str | Path | None) -> list[Path]:
    paths: list[Path] = []
    if path is not None:
        paths.append(Path(path))
    if os.environ.get(CONFIG_ENV_VAR):
        paths.append(Path(os.environ[CONFIG_ENV_VAR]))
    paths.append(Path.cwd() / CONFIG_FILE_NAME)
    return paths


def load_enricher_config(path: str | Path | None = None) -> EnricherConfig:
    """Load the ``[enricher]`` table of the first config file that exists.

    Raises:
        tomllib.TOMLDecodeError: the file exists but is not valid TOML.
        pydantic.ValidationError: a setting has an invalid value.
    """
    for candidate in _config_paths(path):
        if candidate.is_file():
            with open(candidate, "rb") as f:
                data: dict[str, Any] = tomllib.load(f)
            section = data.get("enricher")
            return EnricherConfig.model_validate(section if isinstance(section, dict) else {})
    return EnricherConfig()

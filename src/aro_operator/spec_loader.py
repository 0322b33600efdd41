"""Cluster spec file loading with validation.

SECURITY: All file operations enforce size limits to prevent DoS attacks
via large files. Input validation is performed at the boundary, so the
reconciler only ever receives typed ClusterSpec values.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import ClusterSpec

logger = logging.getLogger(__name__)

SPEC_FILE_SUFFIXES = (".yaml", ".yml")
SPEC_KIND = "OpenShiftManagedCluster"


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic errors one per line as "location: message"."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"]) or "<root>"
        lines.append(f"  - {loc}: {item['msg']}")
    return "\n".join(lines)


def parse_spec(raw_data: Any, source: str = "<memory>") -> ClusterSpec:
    """Validate a parsed YAML document into a ClusterSpec.

    Accepts a flat mapping or a Kubernetes-style wrapper
    (apiVersion/kind/metadata/spec). In the wrapped form metadata.name
    is used when the spec omits a name.

    Raises:
        SpecLoadError: If the document is not a mapping or fails validation.
    """
    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec must be a YAML mapping: {source}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        kind = raw_data.get("kind")
        if kind is not None and kind != SPEC_KIND:
            raise SpecLoadError(f"Unsupported kind {kind!r} in {source}, expected {SPEC_KIND!r}")
        spec_data = raw_data.get("spec") or {}
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {source}")
        metadata = raw_data.get("metadata") or {}
        if "name" not in spec_data and isinstance(metadata, dict) and metadata.get("name"):
            spec_data = {**spec_data, "name": metadata["name"]}
    else:
        spec_data = raw_data

    try:
        return ClusterSpec.model_validate(spec_data)
    except ValidationError as e:
        raise SpecLoadError(
            f"Validation failed for {source}:\n{format_validation_error(e)}"
        ) from e


def load_spec(spec_path: Path) -> ClusterSpec:
    """Load and validate one cluster spec file.

    Raises:
        SpecLoadError: If the file cannot be read or fails validation.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    spec = parse_spec(raw_data, str(spec_path))
    logger.info(
        "Loaded cluster spec",
        extra={"cluster": spec.name, "resource_group": spec.resource_group_name, "path": str(spec_path)},
    )
    return spec


def load_specs(specs_dir: Path) -> list[ClusterSpec]:
    """Load every spec file in a directory, sorted by file name.

    Raises:
        SpecLoadError: If the directory is missing, any file is invalid,
            or two files declare the same cluster.
    """
    if not specs_dir.is_dir():
        raise SpecLoadError(f"Specs directory does not exist: {specs_dir}")

    specs: list[ClusterSpec] = []
    seen: dict[tuple[str, str], Path] = {}
    for path in sorted(specs_dir.iterdir()):
        if path.suffix not in SPEC_FILE_SUFFIXES or not path.is_file():
            continue
        spec = load_spec(path)
        key = (spec.resource_group_name.lower(), spec.name)
        if key in seen:
            raise SpecLoadError(
                f"Cluster {spec.name!r} in resource group {spec.resource_group_name!r} "
                f"is declared in both {seen[key]} and {path}"
            )
        seen[key] = path
        specs.append(spec)

    return specs

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from gram_deploy.files import read_regular_file
from gram_deploy.models import SUPPORTED_SCHEMA_VERSIONS, Manifest, SourceDescriptor

YAML_SUFFIXES = {".yaml", ".yml"}


class ManifestError(RuntimeError):
    pass


class ParseFailure(ManifestError):
    pass


class UnsupportedSchema(ManifestError):
    pass


class EmptySourceList(ManifestError):
    pass


def load_manifest(path: Path) -> Manifest:
    """Read, parse and validate a deployment manifest.

    Raises ``InvalidPath``/``ReadFailure`` for file problems and a
    ``ManifestError`` subclass for anything wrong with the content. A
    manifest is only returned once every check has passed.
    """
    raw = read_regular_file(path)
    data = _parse(path, raw)

    if not isinstance(data, dict):
        raise ParseFailure(f"Manifest {path} must be an object at the top level")

    schema_version = data.get("schema_version")
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise UnsupportedSchema(
            f"Unsupported schema version: '{schema_version}'. "
            f"Expected one of {list(SUPPORTED_SCHEMA_VERSIONS)}"
        )

    if not data.get("sources"):
        raise EmptySourceList(f"Manifest {path} must specify at least one source")

    try:
        return Manifest.model_validate(data)
    except ValidationError as exc:
        raise ParseFailure(f"Manifest validation failed for {path}: {exc}") from exc


def _parse(path: Path, raw: bytes) -> Any:
    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ParseFailure(f"Invalid YAML in manifest {path}: {exc}") from exc

    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseFailure(f"Invalid JSON in manifest {path}: {exc}") from exc


def example_manifest(location: str) -> Manifest:
    return Manifest(
        schema_version=SUPPORTED_SCHEMA_VERSIONS[-1],
        sources=(SourceDescriptor(type="openapiv3", location=location),),
    )


def write_manifest(path: Path, manifest: Manifest) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(manifest.model_dump_json(indent=2) + "\n", encoding="utf-8")

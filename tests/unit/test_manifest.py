from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from gram_deploy.files import InvalidPath
from gram_deploy.manifest import (
    EmptySourceList,
    ParseFailure,
    UnsupportedSchema,
    example_manifest,
    load_manifest,
    write_manifest,
)


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_manifest(tmp_path: Path) -> None:
    file = _write(
        tmp_path / "gram.deployment.json",
        '{"schema_version":"1.0.0","sources":[{"type":"openapiv3","location":"./a.yaml"}]}',
    )

    manifest = load_manifest(file)

    assert manifest.schema_version == "1.0.0"
    assert [source.location for source in manifest.sources] == ["./a.yaml"]
    assert manifest.sources[0].type == "openapiv3"


def test_load_yaml_manifest(tmp_path: Path) -> None:
    file = _write(
        tmp_path / "gram.deployment.yaml",
        "schema_version: '1.0.0'\n"
        "sources:\n"
        "  - type: openapiv3\n"
        "    location: specs/pets.yaml\n"
        "  - type: openapiv3\n"
        "    location: specs/users.json\n",
    )

    manifest = load_manifest(file)

    assert [source.location for source in manifest.sources] == [
        "specs/pets.yaml",
        "specs/users.json",
    ]


@pytest.mark.parametrize("version", ["2.0.0", "1.0", "", None])
def test_unsupported_schema_version(tmp_path: Path, version: str | None) -> None:
    schema = "null" if version is None else f'"{version}"'
    file = _write(
        tmp_path / "manifest.json",
        f'{{"schema_version":{schema},"sources":[{{"type":"openapiv3","location":"a.yaml"}}]}}',
    )

    with pytest.raises(UnsupportedSchema) as exc_info:
        load_manifest(file)

    assert "1.0.0" in str(exc_info.value)


def test_missing_schema_version(tmp_path: Path) -> None:
    file = _write(tmp_path / "manifest.json", '{"sources":[{"type":"openapiv3","location":"a"}]}')

    with pytest.raises(UnsupportedSchema):
        load_manifest(file)


@pytest.mark.parametrize("body", ['{"schema_version":"1.0.0","sources":[]}', '{"schema_version":"1.0.0"}'])
def test_empty_source_list(tmp_path: Path, body: str) -> None:
    file = _write(tmp_path / "manifest.json", body)

    with pytest.raises(EmptySourceList):
        load_manifest(file)


def test_missing_manifest_is_invalid_path(tmp_path: Path) -> None:
    with pytest.raises(InvalidPath):
        load_manifest(tmp_path / "nope.json")


def test_directory_is_invalid_path(tmp_path: Path) -> None:
    with pytest.raises(InvalidPath):
        load_manifest(tmp_path)


def test_symlink_is_invalid_path(tmp_path: Path) -> None:
    target = _write(tmp_path / "real.json", '{"schema_version":"1.0.0","sources":[]}')
    link = tmp_path / "link.json"
    link.symlink_to(target)

    with pytest.raises(InvalidPath):
        load_manifest(link)


def test_malformed_json(tmp_path: Path) -> None:
    file = _write(tmp_path / "manifest.json", '{"schema_version": "1.0.0", "sources": [')

    with pytest.raises(ParseFailure) as exc_info:
        load_manifest(file)

    assert "Invalid JSON" in str(exc_info.value)


def test_malformed_yaml(tmp_path: Path) -> None:
    file = _write(tmp_path / "manifest.yml", "schema_version: [1.0.0\n")

    with pytest.raises(ParseFailure):
        load_manifest(file)


def test_top_level_must_be_an_object(tmp_path: Path) -> None:
    file = _write(tmp_path / "manifest.json", '["1.0.0"]')

    with pytest.raises(ParseFailure):
        load_manifest(file)


def test_unknown_source_type(tmp_path: Path) -> None:
    file = _write(
        tmp_path / "manifest.json",
        '{"schema_version":"1.0.0","sources":[{"type":"graphql","location":"a.graphql"}]}',
    )

    with pytest.raises(ParseFailure) as exc_info:
        load_manifest(file)

    assert "openapiv3" in str(exc_info.value)


def test_manifest_is_immutable(tmp_path: Path) -> None:
    file = _write(
        tmp_path / "manifest.json",
        '{"schema_version":"1.0.0","sources":[{"type":"openapiv3","location":"a.yaml"}]}',
    )
    manifest = load_manifest(file)

    with pytest.raises(ValidationError):
        manifest.schema_version = "2.0.0"  # type: ignore[misc]


def test_written_example_manifest_loads(tmp_path: Path) -> None:
    file = tmp_path / "nested" / "gram.deployment.json"

    write_manifest(file, example_manifest("openapi.yaml"))

    manifest = load_manifest(file)
    assert manifest.sources[0].location == "openapi.yaml"

from __future__ import annotations

import io
import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import BinaryIO
from urllib.parse import urlparse

from gram_deploy.files import ReadFailure, read_regular_file, stat_regular_file
from gram_deploy.models import SourceDescriptor, SourceType

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("http://", "https://")
FALLBACK_CONTENT_TYPE = "application/yaml"
EXPLICIT_CONTENT_TYPES = {
    ".json": "application/json",
    ".yaml": "application/yaml",
    ".yml": "application/yaml",
}


class SourceError(RuntimeError):
    pass


class SourceNotImplemented(SourceError, NotImplementedError):
    pass


def infer_content_type(location: str) -> str:
    """Explicit suffix table first, then the system MIME table, then YAML."""
    if is_remote(location):
        suffix = PurePosixPath(urlparse(location).path).suffix.lower()
    else:
        suffix = Path(location).suffix.lower()

    explicit = EXPLICIT_CONTENT_TYPES.get(suffix)
    if explicit:
        return explicit

    if suffix:
        guessed, _ = mimetypes.guess_type(f"source{suffix}", strict=False)
        if guessed:
            return guessed
    return FALLBACK_CONTENT_TYPE


def is_remote(location: str) -> bool:
    return location.startswith(REMOTE_PREFIXES)


@dataclass(slots=True)
class ResolvedSource:
    """A single-use handle on one source's bytes. Close it exactly once."""

    source_type: SourceType
    location: str
    content_type: str
    size: int
    content: BinaryIO = field(repr=False)

    @property
    def name(self) -> str:
        return Path(self.location).name or self.location

    def read(self) -> bytes:
        return self.content.read()

    def close(self) -> None:
        self.content.close()

    def __enter__(self) -> ResolvedSource:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass(frozen=True, slots=True)
class LocalSource:
    source_type: SourceType
    path: Path

    def resolve(self) -> ResolvedSource:
        info = stat_regular_file(self.path)
        data = read_regular_file(self.path)
        if len(data) != info.st_size:
            raise ReadFailure(
                f"{self.path} changed while reading: expected {info.st_size} bytes, got {len(data)}"
            )

        location = str(self.path)
        logger.debug("Resolved local source %s (%d bytes)", location, info.st_size)
        return ResolvedSource(
            source_type=self.source_type,
            location=location,
            content_type=infer_content_type(location),
            size=info.st_size,
            content=io.BytesIO(data),
        )


@dataclass(frozen=True, slots=True)
class RemoteSource:
    source_type: SourceType
    url: str

    def resolve(self) -> ResolvedSource:
        # A real fetch needs a policy for redirects, auth headers and size
        # limits before it can be enabled.
        raise SourceNotImplemented(f"Remote URL sources are not yet supported: {self.url}")


SourceLocation = LocalSource | RemoteSource


def locate(descriptor: SourceDescriptor) -> SourceLocation:
    if is_remote(descriptor.location):
        return RemoteSource(source_type=descriptor.type, url=descriptor.location)
    return LocalSource(source_type=descriptor.type, path=Path(descriptor.location))


def resolve_source(descriptor: SourceDescriptor) -> ResolvedSource:
    return locate(descriptor).resolve()

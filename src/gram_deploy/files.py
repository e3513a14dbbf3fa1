from __future__ import annotations

import os
import stat
from pathlib import Path


class FileError(RuntimeError):
    pass


class InvalidPath(FileError):
    pass


class ReadFailure(FileError):
    pass


def stat_regular_file(path: Path) -> os.stat_result:
    """Stat without following symlinks; anything but a regular file is rejected."""
    try:
        info = path.lstat()
    except OSError as exc:
        raise InvalidPath(f"Invalid file path {path}: {exc.strerror or exc}") from exc

    if not stat.S_ISREG(info.st_mode):
        raise InvalidPath(f"Invalid file path {path}: must be a regular file")
    return info


def read_regular_file(path: Path) -> bytes:
    stat_regular_file(path)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ReadFailure(f"Failed to read {path}: {exc.strerror or exc}") from exc

"""
Atomic file replacement helpers.

Every write goes to a temporary file in the destination directory and is
then renamed over the target, so readers only ever see the old or the new
content and a crash never leaves a truncated file behind.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path


def _fsync_dir(path: Path) -> None:
    try:
        fd = os.open(str(path), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def _replace(tmp_path: Path, path: Path) -> None:
    os.replace(str(tmp_path), str(path))
    _fsync_dir(path.parent)


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to path via a temp file and an atomic rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        _replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)


def atomic_copy(source: Path, destination: Path) -> None:
    """Copy a file to destination via a temp file and an atomic rename."""
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".tmp", dir=str(destination.parent)
    )
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        shutil.copyfile(source, tmp_path)
        _replace(tmp_path, destination)
    finally:
        tmp_path.unlink(missing_ok=True)

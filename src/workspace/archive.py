"""
Archive Extraction — Unpack a release zip into the workspace root.

Release archives do not reliably carry directory entries, so entry kinds
are inferred from their names:

- a name ending in "/" is a directory
- a final path component with an extension, a leading dot, or exactly
  LICENSE is a file
- anything else is created as a directory

Files are written byte for byte; intermediate directories are created as
needed. An entry that would land outside the destination aborts the
extraction with ArchiveError.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import Optional

from ..errors import ArchiveError

logger = logging.getLogger(__name__)

EXTENSIONLESS_FILES = ("LICENSE",)


def is_file_entry(name: str) -> bool:
    """Whether an archive entry name denotes a file."""
    if name.endswith("/"):
        return False
    last = PurePosixPath(name).name
    if last in EXTENSIONLESS_FILES:
        return True
    return last.startswith(".") or bool(PurePosixPath(last).suffix)


def _safe_target(destination: Path, name: str) -> Optional[Path]:
    """Resolve an entry below destination, or None when it escapes it."""
    entry = PurePosixPath(name.replace("\\", "/"))
    if entry.is_absolute() or ".." in entry.parts:
        return None
    target = (destination / Path(*entry.parts)).resolve() if entry.parts else destination.resolve()
    root = destination.resolve()
    if target != root and root not in target.parents:
        return None
    return target


def unpack_archive(archive_path: Path, destination: Path) -> int:
    """
    Unpack `archive_path` into `destination`.

    Returns:
        Number of files written

    Raises:
        ArchiveError: If the archive is unreadable or an entry escapes destination
    """
    destination.mkdir(parents=True, exist_ok=True)
    files_written = 0

    try:
        with zipfile.ZipFile(archive_path) as zf:
            for info in zf.infolist():
                target = _safe_target(destination, info.filename)
                if target is None:
                    raise ArchiveError(f"Archive entry escapes the workspace: {info.filename!r}")

                if not is_file_entry(info.filename):
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, target.open("wb") as dst:
                    shutil.copyfileobj(src, dst)
                files_written += 1
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Not a valid zip archive: {archive_path.name}: {e}") from e

    logger.info(f"[archive] Unpacked {files_written} file(s) from {archive_path.name}")
    return files_written

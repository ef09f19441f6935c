"""
Workspace Files — Create, clear, overlay and dispose of workspaces.

## Workspace Name Format

    Target-{YYYYmmdd}T{HHMMSS}-{6 hex}
    Example: Target-20260204T160003-9a2f1c

## Retention

    always      keep every workspace
    on-failure  delete after a successful deployment, keep failed ones
    never       always delete
"""

from __future__ import annotations

import logging
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from ..config.settings import RETENTION_ALWAYS, RETENTION_NEVER, RETENTION_ON_FAILURE

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "Target-"


def generate_workspace_name(now: Optional[datetime] = None) -> str:
    ts = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S")
    return f"{WORKSPACE_PREFIX}{ts}-{uuid4().hex[:6]}"


def create_workspace_path(root: Path, now: Optional[datetime] = None) -> Path:
    """
    Reserve a fresh, unused workspace path under root.

    The directory itself is not created; `git clone` creates it.
    """
    root.mkdir(parents=True, exist_ok=True)
    while True:
        path = root / generate_workspace_name(now)
        if not path.exists():
            return path


def clear_workspace(path: Path, keep: str = ".git") -> int:
    """Delete everything in the workspace root except `keep`. Returns entries removed."""
    removed = 0
    for entry in path.iterdir():
        if entry.name == keep:
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    logger.debug(f"[workspace] Cleared {removed} entr(ies) from {path.name}")
    return removed


def copy_tree(source: Path, destination: Path) -> int:
    """
    Recursively copy `source` into `destination`, overwriting same-named files.

    Returns:
        Number of files copied
    """
    if not source.is_dir():
        raise FileNotFoundError(f"Resource directory not found: {source}")

    copied = 0
    for item in sorted(source.rglob("*")):
        target = destination / item.relative_to(source)
        if item.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(item, target)
        copied += 1
    logger.info(f"[workspace] Overlaid {copied} resource file(s) from {source.name}")
    return copied


def should_retain(policy: str, succeeded: bool) -> bool:
    if policy == RETENTION_ALWAYS:
        return True
    if policy == RETENTION_NEVER:
        return False
    if policy == RETENTION_ON_FAILURE:
        return not succeeded
    raise ValueError(f"Unknown retention policy: {policy}")


def apply_retention(path: Path, policy: str, succeeded: bool) -> bool:
    """
    Delete the workspace unless the policy keeps it.

    Returns:
        True if the workspace is still on disk
    """
    if not path.exists():
        return False
    if should_retain(policy, succeeded):
        logger.info(f"[workspace] Retaining {path}")
        return True
    shutil.rmtree(path, ignore_errors=True)
    logger.debug(f"[workspace] Removed {path.name}")
    return path.exists()


def prune_workspaces(root: Path, older_than_seconds: float, now: Optional[float] = None) -> List[Path]:
    """Delete retained Target-* workspaces last modified before the threshold."""
    if not root.is_dir():
        return []

    cutoff = (now if now is not None else time.time()) - older_than_seconds
    removed: List[Path] = []
    for entry in sorted(root.iterdir()):
        if not entry.is_dir() or not entry.name.startswith(WORKSPACE_PREFIX):
            continue
        if entry.stat().st_mtime >= cutoff:
            continue
        shutil.rmtree(entry, ignore_errors=True)
        removed.append(entry)
        logger.info(f"[workspace] Pruned {entry.name}")
    return removed

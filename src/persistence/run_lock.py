"""
Run Lock — Keep two mirror runs from overlapping.

The lock is a file created with O_EXCL holding the owner's pid and start
time. A lock older than `stale_after` belongs to a run that died without
cleaning up and is taken over with a warning.

## Usage

    with RunLock(Path("state/release-mirror.lock")):
        orchestrator.run(settings.branches)
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

from ..errors import RunInProgressError

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = timedelta(hours=23)


class RunLock:
    """Exclusive, file-based lock for one run."""

    def __init__(self, path: Path, stale_after: timedelta = DEFAULT_STALE_AFTER):
        self.path = path
        self.stale_after = stale_after
        self.held = False

    def read(self, path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
        """Contents of the current lock file, or None if there is none."""
        try:
            return json.loads((path or self.path).read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}

    def _age(self, now: datetime, path: Optional[Path] = None) -> Optional[timedelta]:
        path = path or self.path
        info = self.read(path)
        if info is None:
            return None
        started = info.get("started_at")
        if started:
            try:
                return now - datetime.fromisoformat(started)
            except ValueError:
                pass
        # Unreadable lock: fall back to the file's mtime
        try:
            mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except FileNotFoundError:
            return None
        return now - mtime

    def _create(self, now: datetime) -> bool:
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"pid": os.getpid(), "started_at": now.isoformat()}, f)
        return True

    def _discard_stale(self, now: datetime) -> None:
        """
        Move the stale lock aside under a unique name, then delete it.

        Only one process can rename a given file. If what we moved turns
        out to be fresh, another run replaced the stale lock before us, so
        it is put back and we back off.
        """
        moved = self.path.with_name(f"{self.path.name}.stale-{uuid4().hex[:8]}")
        try:
            os.rename(self.path, moved)
        except FileNotFoundError:
            return

        age = self._age(now, moved)
        if age is not None and age < self.stale_after:
            try:
                os.link(moved, self.path)
            except FileExistsError:
                pass
            moved.unlink(missing_ok=True)
            raise RunInProgressError(f"Lost the race for {self.path.name} to another run")
        moved.unlink(missing_ok=True)

    def acquire(self, now: Optional[datetime] = None) -> None:
        """
        Take the lock.

        Raises:
            RunInProgressError: If a fresh lock is held by another run
        """
        now = now or datetime.now(timezone.utc)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self._create(now):
            self.held = True
            return

        age = self._age(now)
        if age is not None and age < self.stale_after:
            info = self.read() or {}
            raise RunInProgressError(
                f"Another run holds {self.path.name} (pid {info.get('pid', '?')}, "
                f"started {info.get('started_at', '?')})"
            )

        logger.warning(f"[lock] Taking over stale lock {self.path} (age {age})")
        self._discard_stale(now)
        if not self._create(now):
            raise RunInProgressError(f"Lost the race for {self.path.name} to another run")
        self.held = True

    def release(self) -> None:
        if self.held:
            self.path.unlink(missing_ok=True)
            self.held = False

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

"""
Audit Ledger — Append-only NDJSON record of mirror runs.

Each line is one JSON object (newline-delimited JSON).
Events are never edited, only appended. The ledger is a diagnostic
trail; the downstream release list stays the source of truth for what has
been mirrored.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..models.result import BranchResult, DeploymentResult, RunResult


class AuditWriter:
    """
    Append-only NDJSON audit ledger writer.

    Safe to share between branch flows running in parallel threads.

    Usage:
        audit = AuditWriter(Path("audit/runs.ndjson"))
        audit.emit("run_start", run_id="R-20260204T160000-92929A")
    """

    def __init__(self, path: Path):
        """Initialize the audit writer."""
        self.path = path
        self._lock = threading.Lock()
        self._ensure_exists()

    def _ensure_exists(self) -> None:
        """Ensure the audit file and directory exist."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def emit(
        self,
        event_type: str,
        run_id: str,
        level: str = "info",
        branch: Optional[str] = None,
        release: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Emit an audit event.

        Args:
            event_type: Type of event (run_start, backlog, release_result, etc.)
            run_id: Identifier of the run
            level: Log level (info, warning, error)
            branch: Branch the event concerns
            release: Release the event concerns
            details: Additional event details

        Returns:
            Generated event_id
        """
        event_id = f"E-{uuid4().hex[:8].upper()}"
        now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

        entry: Dict[str, Any] = {
            "ts_iso": now,
            "event_id": event_id,
            "run_id": run_id,
            "level": level,
            "type": event_type,
        }

        if branch is not None:
            entry["branch"] = branch
        if release is not None:
            entry["release"] = release
        if details is not None:
            entry["details"] = details

        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")

        return event_id

    def emit_run_start(self, run_id: str, branches: List[str], dry_run: bool) -> str:
        return self.emit(
            event_type="run_start",
            run_id=run_id,
            details={"branches": branches, "dry_run": dry_run},
        )

    def emit_branch_start(self, run_id: str, branch: str, name_prefix: str) -> str:
        return self.emit(
            event_type="branch_start",
            run_id=run_id,
            branch=branch,
            details={"name_prefix": name_prefix},
        )

    def emit_backlog(
        self,
        run_id: str,
        branch: str,
        ledger_marker: Optional[str],
        releases: List[str],
        warning: Optional[str] = None,
    ) -> str:
        return self.emit(
            event_type="backlog",
            run_id=run_id,
            level="warning" if warning else "info",
            branch=branch,
            details={"ledger_marker": ledger_marker, "releases": releases, "warning": warning},
        )

    def emit_release_result(self, run_id: str, result: DeploymentResult) -> str:
        """Emit a release_result event."""
        details: Dict[str, Any] = {
            "status": result.status,
            "commit_sha": result.commit_sha,
            "release_url": result.release_url,
            "workspace": result.workspace,
            "duration_ms": result.duration_ms,
        }
        if result.error is not None:
            details["error"] = result.error.model_dump()
        if result.details:
            details.update(result.details)
        return self.emit(
            event_type="release_result",
            run_id=run_id,
            level="error" if result.status == "failed" else "info",
            branch=result.branch,
            release=result.release,
            details=details,
        )

    def emit_branch_end(self, run_id: str, result: BranchResult) -> str:
        return self.emit(
            event_type="branch_end",
            run_id=run_id,
            level="info" if result.healthy else "error",
            branch=result.branch,
            details={
                "succeeded": result.succeeded,
                "failed": result.failed,
                "skipped": result.skipped,
                "halted": result.halted,
                "error": result.error,
            },
        )

    def emit_run_end(self, result: RunResult) -> str:
        """Emit a run_end event."""
        return self.emit(
            event_type="run_end",
            run_id=result.run_id,
            level="info" if result.healthy else "error",
            details={
                "duration_ms": result.duration_ms,
                "deployed": result.deployed_count,
                "failed": result.failed_count,
                "healthy": result.healthy,
            },
        )

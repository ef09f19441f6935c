"""
Result Models — Outcomes of deployments, branch flows and runs.

Every pipeline invocation produces a `DeploymentResult`, whether it
succeeded or not. The orchestrator collects them per branch so callers can
assert on outcomes instead of scraping logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ErrorDetails(BaseModel):
    """Details about a failed stage."""

    code: str
    message: str
    stage: Optional[str] = None


class DeploymentResult(BaseModel):
    """
    Result of mirroring one release into one branch.

    `halts_branch` is set when continuing with later releases on the same
    branch would be unsafe (the remote moved under us).
    """

    status: Literal["ok", "skipped", "failed"]
    release: str
    branch: str
    commit_sha: Optional[str] = None
    release_url: Optional[str] = None
    workspace: Optional[str] = None
    duration_ms: int = 0
    halts_branch: bool = False
    ts_iso: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    error: Optional[ErrorDetails] = None
    details: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def succeeded(
        cls,
        release: str,
        branch: str,
        commit_sha: Optional[str] = None,
        release_url: Optional[str] = None,
        workspace: Optional[str] = None,
        duration_ms: int = 0,
    ) -> "DeploymentResult":
        """Create a successful result."""
        return cls(
            status="ok",
            release=release,
            branch=branch,
            commit_sha=commit_sha,
            release_url=release_url,
            workspace=workspace,
            duration_ms=duration_ms,
        )

    @classmethod
    def skipped(cls, release: str, branch: str, reason: str) -> "DeploymentResult":
        """Create a skipped result."""
        return cls(
            status="skipped",
            release=release,
            branch=branch,
            details={"skip_reason": reason},
        )

    @classmethod
    def failed(
        cls,
        release: str,
        branch: str,
        stage: Optional[str],
        error_code: str,
        error_message: str,
        workspace: Optional[str] = None,
        commit_sha: Optional[str] = None,
        duration_ms: int = 0,
        halts_branch: bool = False,
    ) -> "DeploymentResult":
        """Create a failed result."""
        return cls(
            status="failed",
            release=release,
            branch=branch,
            commit_sha=commit_sha,
            workspace=workspace,
            duration_ms=duration_ms,
            halts_branch=halts_branch,
            error=ErrorDetails(code=error_code, message=error_message, stage=stage),
        )


@dataclass
class BranchResult:
    """Result of one branch flow within a run."""

    branch: str
    name_prefix: str
    ledger_marker: Optional[str] = None
    backlog: List[str] = field(default_factory=list)
    deployments: List[DeploymentResult] = field(default_factory=list)
    error: Optional[str] = None
    warning: Optional[str] = None
    halted: bool = False

    @property
    def succeeded(self) -> List[str]:
        return [d.release for d in self.deployments if d.status == "ok"]

    @property
    def failed(self) -> List[str]:
        return [d.release for d in self.deployments if d.status == "failed"]

    @property
    def skipped(self) -> List[str]:
        return [d.release for d in self.deployments if d.status == "skipped"]

    @property
    def healthy(self) -> bool:
        return self.error is None and not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch": self.branch,
            "name_prefix": self.name_prefix,
            "ledger_marker": self.ledger_marker,
            "backlog": list(self.backlog),
            "deployments": [d.model_dump() for d in self.deployments],
            "error": self.error,
            "warning": self.warning,
            "halted": self.halted,
        }


@dataclass
class RunResult:
    """Result of one scheduled run across all branch targets."""

    run_id: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: int = 0
    dry_run: bool = False
    branches: List[BranchResult] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(b.healthy for b in self.branches)

    @property
    def deployed_count(self) -> int:
        return sum(len(b.succeeded) for b in self.branches)

    @property
    def failed_count(self) -> int:
        return sum(len(b.failed) for b in self.branches)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_ms": self.duration_ms,
            "dry_run": self.dry_run,
            "healthy": self.healthy,
            "branches": [b.to_dict() for b in self.branches],
        }

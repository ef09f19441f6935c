"""
CLI core helpers — settings loading, locked runs and result printing.

Shared by the run/backlog commands in main.py and the deploy and ops
command modules.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

import click

from ..config.settings import BranchTarget, Settings
from ..engine.orchestrator import BranchOrchestrator
from ..errors import ConfigError
from ..models.result import BranchResult, RunResult
from ..persistence.audit import AuditWriter
from ..persistence.run_lock import RunLock

logger = logging.getLogger(__name__)

DEFAULT_LOCK_FILE = "state/release-mirror.lock"
DEFAULT_AUDIT_FILE = "audit/runs.ndjson"


def resolve_path(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else root / path


def load_settings(ctx: click.Context, strict: bool = True) -> Settings:
    """Build settings from the environment, exiting with status 2 on bad config."""
    try:
        return Settings.from_env(project_root=ctx.obj["root"], strict=strict)
    except ConfigError as e:
        click.secho(f"✗ Configuration error: {e}", fg="red", err=True)
        click.echo("  → Run `release-mirror check-config` for details", err=True)
        ctx.exit(2)


def select_targets(ctx: click.Context, settings: Settings, branch: Optional[str]) -> Sequence[BranchTarget]:
    if not branch:
        return settings.branches
    target = settings.get_branch(branch)
    if target is None:
        known = ", ".join(t.branch_name for t in settings.branches) or "none"
        click.secho(f"✗ Unknown branch {branch!r} (configured: {known})", fg="red", err=True)
        ctx.exit(2)
    return [target]


def locked_run(
    settings: Settings,
    targets: Sequence[BranchTarget],
    lock_path: Path,
    audit_path: Optional[Path],
    dry_run: bool = False,
) -> RunResult:
    """
    One full reconciliation run under the run lock.

    Raises:
        RunInProgressError: If another run holds the lock
    """
    with RunLock(lock_path):
        audit = AuditWriter(audit_path) if audit_path and not dry_run else None
        orchestrator = BranchOrchestrator.from_settings(settings, audit=audit)
        with orchestrator:
            return orchestrator.run(targets, dry_run=dry_run)


def print_branch_result(branch: BranchResult, dry_run: bool = False) -> None:
    prefix = branch.name_prefix or "*"
    click.secho(f"\n  {branch.branch} ({prefix}x)", bold=True)
    click.echo(f"    Ledger marker: {branch.ledger_marker or '(none)'}")

    if branch.error:
        click.secho(f"    ✗ Feed error: {branch.error}", fg="red")
        return
    if branch.warning:
        click.secho(f"    ⚠ {branch.warning}", fg="yellow")

    if not branch.backlog:
        click.secho("    ✓ Up to date", fg="green")
        return

    click.echo(f"    Backlog: {', '.join(branch.backlog)}")
    if dry_run:
        return

    for deployment in branch.deployments:
        if deployment.status == "ok":
            sha = (deployment.commit_sha or "")[:12]
            click.secho(f"    ✓ {deployment.release}", fg="green", nl=False)
            click.echo(f" → {sha} {deployment.release_url or ''}".rstrip())
        elif deployment.status == "skipped":
            reason = (deployment.details or {}).get("skip_reason", "")
            click.secho(f"    - {deployment.release} skipped: {reason}", fg="yellow")
        else:
            error = deployment.error
            stage = error.stage if error else "?"
            message = error.message if error else ""
            click.secho(f"    ✗ {deployment.release} failed at {stage}: {message}", fg="red")
            if deployment.workspace:
                click.echo(f"      Workspace kept: {deployment.workspace}")


def print_run_result(result: RunResult) -> None:
    click.echo(f"\n  Run ID: {result.run_id}")
    for branch in result.branches:
        print_branch_result(branch, dry_run=result.dry_run)

    click.echo()
    if result.dry_run:
        click.secho("(Dry run — nothing deployed)", fg="cyan")
    elif result.healthy:
        click.secho(f"✓ {result.deployed_count} release(s) deployed", fg="green", bold=True)
    else:
        click.secho(
            f"✗ {result.deployed_count} deployed, {result.failed_count} failed",
            fg="red",
            bold=True,
        )

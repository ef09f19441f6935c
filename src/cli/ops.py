"""
CLI ops commands — daily loop and workspace housekeeping.

Usage:
    python -m src.main serve [--at 16:00] [--run-now]
    python -m src.main prune-workspaces [--older-than-days 7]
"""

from __future__ import annotations

import logging

import click

from .core import DEFAULT_AUDIT_FILE, DEFAULT_LOCK_FILE

logger = logging.getLogger(__name__)


@click.command("serve")
@click.option("--at", "at_time", default="16:00", show_default=True, help="Daily run time (HH:MM, UTC)")
@click.option("--run-now", is_flag=True, help="Run once immediately before waiting")
@click.option("--lock-file", default=DEFAULT_LOCK_FILE, help="Path to run lock")
@click.option("--audit-file", default=DEFAULT_AUDIT_FILE, help="Path to audit ledger")
@click.pass_context
def serve(ctx: click.Context, at_time: str, run_now: bool, lock_file: str, audit_file: str) -> None:
    """Run the mirror once a day until interrupted."""
    import threading

    from ..config.validator import ConfigValidator
    from ..engine.schedule import DailySchedule
    from ..errors import RunInProgressError
    from .core import load_settings, locked_run, resolve_path

    root = ctx.obj["root"]
    settings = load_settings(ctx)

    try:
        schedule = DailySchedule(at_time)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--at")

    ConfigValidator(settings).log_status()

    def job() -> None:
        try:
            result = locked_run(
                settings,
                settings.branches,
                lock_path=resolve_path(root, lock_file),
                audit_path=resolve_path(root, audit_file),
            )
        except RunInProgressError as e:
            logger.warning(f"[serve] Skipping scheduled run: {e}")
            return
        if not result.healthy:
            logger.error(
                f"[serve] Run {result.run_id} finished with {result.failed_count} failure(s)"
            )

    click.echo(f"Mirroring {settings.upstream_repo} → {settings.downstream_repo} daily at {at_time} UTC")
    for target in settings.branches:
        click.echo(f"  {target.display_name}")

    stop = threading.Event()
    try:
        schedule.run_forever(job, stop, run_now=run_now)
    except KeyboardInterrupt:
        stop.set()
        click.echo("Shutting down...")


@click.command("prune-workspaces")
@click.option("--older-than-days", default=7.0, type=float, show_default=True, help="Age threshold")
@click.pass_context
def prune_workspaces_cmd(ctx: click.Context, older_than_days: float) -> None:
    """Delete retained deployment workspaces older than a threshold."""
    from ..workspace.files import prune_workspaces
    from .core import load_settings

    settings = load_settings(ctx, strict=False)
    removed = prune_workspaces(settings.workspace_root, older_than_days * 86400)

    if not removed:
        click.echo("No workspaces to prune.")
        return
    for path in removed:
        click.echo(f"  Removed {path.name}")
    click.secho(f"✓ Pruned {len(removed)} workspace(s)", fg="green")

"""
Release Mirror — CLI Entry Point

Usage:
    python -m src.main run [--dry-run] [--branch NAME] [--json]
    python -m src.main backlog [--json]
    python -m src.main deploy --branch NAME --release NAME
    python -m src.main serve [--at HH:MM] [--run-now]
    python -m src.main check-config
    python -m src.main prune-workspaces [--older-than-days N]
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

# Find .env in project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import json
from typing import Optional

import click

from .adapters.github_api import build_client
from .adapters.release_feed import ReleaseFeedClient
from .cli.config import check_config
from .cli.core import (
    DEFAULT_AUDIT_FILE,
    DEFAULT_LOCK_FILE,
    load_settings,
    locked_run,
    print_branch_result,
    print_run_result,
    resolve_path,
    select_targets,
)
from .cli.deploy import deploy
from .cli.ops import prune_workspaces_cmd, serve
from .engine.orchestrator import BranchOrchestrator
from .errors import RunInProgressError
from .logging_config import setup_logging

# Initialize logging
setup_logging()


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Release Mirror — Replay upstream releases into deployment branches."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("root", get_project_root())


@cli.command()
@click.option("--dry-run", is_flag=True, help="Compute backlogs, deploy nothing")
@click.option("--branch", "branch_name", default=None, help="Only this branch")
@click.option("--json", "as_json", is_flag=True, help="Output result as JSON")
@click.option("--lock-file", default=DEFAULT_LOCK_FILE, help="Path to run lock")
@click.option("--audit-file", default=DEFAULT_AUDIT_FILE, help="Path to audit ledger")
@click.pass_context
def run(
    ctx: click.Context,
    dry_run: bool,
    branch_name: Optional[str],
    as_json: bool,
    lock_file: str,
    audit_file: str,
) -> None:
    """Execute one reconciliation run over all branches."""
    root = ctx.obj["root"]
    settings = load_settings(ctx)
    targets = select_targets(ctx, settings, branch_name)

    try:
        result = locked_run(
            settings,
            targets,
            lock_path=resolve_path(root, lock_file),
            audit_path=resolve_path(root, audit_file),
            dry_run=dry_run,
        )
    except RunInProgressError as e:
        click.secho(f"✗ {e}", fg="yellow", err=True)
        ctx.exit(3)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        print_run_result(result)

    if not result.healthy:
        ctx.exit(1)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def backlog(ctx: click.Context, as_json: bool) -> None:
    """Show which releases each branch is behind by."""
    from .errors import FeedError
    from .models.result import BranchResult

    settings = load_settings(ctx)
    client = build_client(settings)
    orchestrator = BranchOrchestrator(
        feed=ReleaseFeedClient(client, page_size=settings.feed_page_size),
        pipeline=None,
        upstream_repo=settings.upstream_repo,
        downstream_repo=settings.downstream_repo,
        clients=[client],
    )

    results = []
    with orchestrator:
        for target in settings.branches:
            entry = BranchResult(branch=target.branch_name, name_prefix=target.name_prefix)
            try:
                computed = orchestrator.compute_backlog(target)
            except FeedError as e:
                entry.error = str(e)
            else:
                entry.ledger_marker = computed.ledger_marker
                entry.backlog = computed.names
                entry.warning = computed.warning
            results.append(entry)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        click.echo(f"{settings.upstream_repo} → {settings.downstream_repo}")
        for entry in results:
            print_branch_result(entry, dry_run=True)
        click.echo()

    if any(r.error for r in results):
        ctx.exit(1)


cli.add_command(deploy)
cli.add_command(serve)
cli.add_command(check_config)
cli.add_command(prune_workspaces_cmd)


if __name__ == "__main__":
    cli()

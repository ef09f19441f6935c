"""
CLI deploy command — mirror one named release outside the schedule.

Usage:
    python -m src.main deploy --branch master --release 3.42.0

Runs the same pipeline as a scheduled run, under the same run lock. The
ledger is not consulted, so this can also re-deploy a release that was
already mirrored (publishing will then fail on the duplicate tag).
"""

from __future__ import annotations

import click

from .core import DEFAULT_AUDIT_FILE, DEFAULT_LOCK_FILE


@click.command("deploy")
@click.option("--branch", "branch_name", required=True, help="Target branch")
@click.option("--release", "release_name", required=True, help="Upstream release name, e.g. 3.42.0")
@click.option("--lock-file", default=DEFAULT_LOCK_FILE, help="Path to run lock")
@click.option("--audit-file", default=DEFAULT_AUDIT_FILE, help="Path to audit ledger")
@click.pass_context
def deploy(
    ctx: click.Context,
    branch_name: str,
    release_name: str,
    lock_file: str,
    audit_file: str,
) -> None:
    """Deploy a single upstream release to a branch."""
    from ..adapters.artifact import ArtifactFetcher
    from ..adapters.github_api import build_client
    from ..adapters.release_feed import ReleaseFeedClient
    from ..engine.orchestrator import generate_run_id
    from ..engine.pipeline import DeploymentPipeline
    from ..errors import FeedError, RunInProgressError
    from ..persistence.audit import AuditWriter
    from ..persistence.run_lock import RunLock
    from .core import load_settings, resolve_path, select_targets

    root = ctx.obj["root"]
    settings = load_settings(ctx)
    target = select_targets(ctx, settings, branch_name)[0]

    fetcher = ArtifactFetcher.create(timeout=settings.download_timeout)
    with build_client(settings) as client, fetcher:
        feed = ReleaseFeedClient(client, page_size=settings.feed_page_size)

        try:
            releases = feed.fetch_releases(settings.upstream_repo, target.name_prefix)
        except FeedError as e:
            click.secho(f"✗ {e}", fg="red", err=True)
            ctx.exit(1)

        wanted = release_name.lower()
        match = next((r for r in releases if r.name and r.name.lower() == wanted), None)
        if match is None:
            click.secho(
                f"✗ Release {release_name} not found upstream in the {target.name_prefix or '*'}x stream",
                fg="red",
                err=True,
            )
            ctx.exit(1)

        release = match.to_info()
        click.echo(f"Deploying {release.name} → {target.branch_name}...")

        try:
            with RunLock(resolve_path(root, lock_file)):
                pipeline = DeploymentPipeline.from_settings(settings, api_client=client, fetcher=fetcher)
                result = pipeline.deploy(release, target)
        except RunInProgressError as e:
            click.secho(f"✗ {e}", fg="yellow", err=True)
            ctx.exit(3)

    AuditWriter(resolve_path(root, audit_file)).emit_release_result(generate_run_id(), result)

    if result.ok:
        click.secho(f"✓ Deployed {release.name}", fg="green", bold=True)
        if result.commit_sha:
            click.echo(f"  Commit:  {result.commit_sha}")
        if result.release_url:
            click.echo(f"  Release: {result.release_url}")
        return

    error = result.error
    click.secho(
        f"✗ {release.name} failed at {error.stage if error else '?'}: {error.message if error else ''}",
        fg="red",
        bold=True,
    )
    if result.workspace:
        click.echo(f"  Workspace kept: {result.workspace}")
    ctx.exit(1)

"""
Branch Orchestrator — One reconciliation pass over every branch target.

For each BranchTarget:
1. Read the ledger marker (newest downstream release in the stream)
2. Read the upstream releases in the stream
3. Reconcile into a backlog, oldest first
4. Deploy each backlog entry, strictly one after another

Branch flows share nothing and may run in parallel threads; releases
within a branch never do. There are no retries: a failed release is left
for the next run, which re-derives the backlog from the ledger.

## Run ID Format

    R-{YYYYMMDD}T{HHMMSS}-{RANDOM}
    Example: R-20260204T160000-92929A
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import uuid4

import httpx

from ..adapters.artifact import ArtifactFetcher
from ..adapters.github_api import build_client
from ..adapters.release_feed import ReleaseFeedClient
from ..config.settings import BranchTarget, Settings
from ..errors import FeedError
from ..models.result import BranchResult, DeploymentResult, RunResult
from ..persistence.audit import AuditWriter
from .pipeline import DeploymentPipeline
from .reconcile import Backlog, reconcile

logger = logging.getLogger(__name__)

HALT_REASON = "branch halted: an earlier push was rejected"


def generate_run_id() -> str:
    """Generate a unique run ID."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    suffix = uuid4().hex[:6].upper()
    return f"R-{ts}-{suffix}"


class BranchOrchestrator:
    """Drives reconciliation and deployment for each configured branch."""

    def __init__(
        self,
        feed: ReleaseFeedClient,
        pipeline: Optional[DeploymentPipeline],
        upstream_repo: str,
        downstream_repo: str,
        audit: Optional[AuditWriter] = None,
        parallel_branches: bool = False,
        clients: Sequence[httpx.Client] = (),
    ):
        self.feed = feed
        self.pipeline = pipeline
        self.upstream_repo = upstream_repo
        self.downstream_repo = downstream_repo
        self.audit = audit
        self.parallel_branches = parallel_branches
        self.clients = list(clients)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        audit: Optional[AuditWriter] = None,
    ) -> "BranchOrchestrator":
        """Wire the orchestrator from settings. The HTTP clients it creates are closed by close()."""
        client = build_client(settings)
        fetcher = ArtifactFetcher.create(timeout=settings.download_timeout)
        return cls(
            feed=ReleaseFeedClient(client, page_size=settings.feed_page_size),
            pipeline=DeploymentPipeline.from_settings(settings, api_client=client, fetcher=fetcher),
            upstream_repo=settings.upstream_repo,
            downstream_repo=settings.downstream_repo,
            audit=audit,
            parallel_branches=settings.parallel_branches,
            clients=[client, fetcher.client],
        )

    def close(self) -> None:
        for client in self.clients:
            client.close()

    def __enter__(self) -> "BranchOrchestrator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def compute_backlog(self, target: BranchTarget) -> Backlog:
        """
        Read both feeds and reconcile them for one branch.

        Raises:
            FeedError: If either feed cannot be read
        """
        latest = self.feed.fetch_latest_mirrored(self.downstream_repo, target.name_prefix)
        upstream = self.feed.fetch_releases(self.upstream_repo, target.name_prefix)
        return reconcile(latest, upstream)

    def run_branch(
        self,
        target: BranchTarget,
        run_id: Optional[str] = None,
        dry_run: bool = False,
    ) -> BranchResult:
        """
        Run one branch flow. Never raises for feed or pipeline failures.

        Args:
            target: Branch and release stream to mirror
            run_id: Run the flow belongs to (generated if omitted)
            dry_run: Compute the backlog only, deploy nothing
        """
        run_id = run_id or generate_run_id()
        branch = target.branch_name
        result = BranchResult(branch=branch, name_prefix=target.name_prefix)
        log_extra = {"run_id": run_id, "branch": branch}

        logger.info(f"[orchestrator] Branch {target.display_name}", extra=log_extra)
        if self.audit:
            self.audit.emit_branch_start(run_id, branch, target.name_prefix)

        try:
            backlog = self.compute_backlog(target)
        except FeedError as e:
            logger.error(f"[orchestrator] {branch}: feed unavailable, skipping branch: {e}", extra=log_extra)
            result.error = str(e)
            if self.audit:
                self.audit.emit_branch_end(run_id, result)
            return result

        result.ledger_marker = backlog.ledger_marker
        result.backlog = backlog.names
        result.warning = backlog.warning
        if self.audit:
            self.audit.emit_backlog(run_id, branch, backlog.ledger_marker, backlog.names, backlog.warning)

        if not backlog.releases:
            logger.info(f"[orchestrator] {branch}: up to date", extra=log_extra)
        elif dry_run:
            logger.info(
                f"[orchestrator] {branch}: would deploy {', '.join(backlog.names)} (dry run)",
                extra=log_extra,
            )
        else:
            self._deploy_backlog(target, backlog, run_id, result)

        if self.audit:
            self.audit.emit_branch_end(run_id, result)
        logger.info(
            f"[orchestrator] {branch}: {len(result.succeeded)} deployed, "
            f"{len(result.failed)} failed, {len(result.skipped)} skipped",
            extra=log_extra,
        )
        return result

    def _deploy_backlog(
        self,
        target: BranchTarget,
        backlog: Backlog,
        run_id: str,
        result: BranchResult,
    ) -> None:
        if self.pipeline is None:
            raise RuntimeError("No deployment pipeline configured")

        for release in backlog.releases:
            if result.halted:
                deployment = DeploymentResult.skipped(release.name, target.branch_name, HALT_REASON)
            else:
                deployment = self.pipeline.deploy(release, target)
                if deployment.halts_branch:
                    logger.error(
                        f"[orchestrator] {target.branch_name}: push rejected for {release.name}, "
                        f"halting branch for this run",
                        extra={"run_id": run_id, "branch": target.branch_name},
                    )
                    result.halted = True

            result.deployments.append(deployment)
            if self.audit:
                self.audit.emit_release_result(run_id, deployment)

    def run(self, targets: Sequence[BranchTarget], dry_run: bool = False) -> RunResult:
        """
        Run every branch flow once.

        Returns:
            RunResult with one BranchResult per target, in target order
        """
        start_time = time.time()
        run_id = generate_run_id()
        result = RunResult(
            run_id=run_id,
            started_at=datetime.now(timezone.utc).isoformat(),
            dry_run=dry_run,
        )

        logger.info(
            f"[orchestrator] Run {run_id}: {len(targets)} branch(es)"
            f"{' in parallel' if self.parallel_branches and len(targets) > 1 else ''}",
            extra={"run_id": run_id},
        )
        if self.audit:
            self.audit.emit_run_start(run_id, [t.branch_name for t in targets], dry_run)

        branch_results: List[BranchResult]
        if self.parallel_branches and len(targets) > 1:
            with ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix="branch") as pool:
                futures = [pool.submit(self.run_branch, t, run_id, dry_run) for t in targets]
                branch_results = [f.result() for f in futures]
        else:
            branch_results = [self.run_branch(t, run_id, dry_run) for t in targets]

        result.branches = branch_results
        result.ended_at = datetime.now(timezone.utc).isoformat()
        result.duration_ms = int((time.time() - start_time) * 1000)

        if self.audit:
            self.audit.emit_run_end(result)
        logger.info(
            f"[orchestrator] Run {run_id} complete in {result.duration_ms}ms: "
            f"{result.deployed_count} deployed, {result.failed_count} failed",
            extra={"run_id": run_id},
        )
        return result

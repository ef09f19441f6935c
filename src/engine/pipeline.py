"""
Deployment Pipeline — Mirror one release into one branch.

Each deployment runs these stages in order, stopping at the first failure:

1. acquire  - clone the deployment branch into a fresh workspace
2. clear    - delete everything except .git
3. fetch    - download the release archive and unpack it
4. patch    - adapt package.json
5. overlay  - copy the deployment resources over the artifact
6. commit   - stage everything and commit "Add v<name>"
7. push     - push HEAD to the branch
8. publish  - create the downstream release (the ledger entry)

## Failure Handling

Nothing raised inside a stage escapes `deploy()`. The exception is logged
with its traceback and turned into a failed DeploymentResult naming the
stage. Since publishing is last, a release that fails anywhere is simply
picked up again by the next run.

A rejected push additionally sets `halts_branch`: the remote moved under
us, so later releases for the same branch are not attempted this run.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import httpx

from ..adapters.artifact import ArtifactFetcher
from ..adapters.git import GitClient
from ..adapters.github_api import build_client
from ..adapters.github_release import ReleaseAnnouncer
from ..config.settings import RETENTION_ON_FAILURE, BranchTarget, Settings
from ..errors import ArtifactError, PushRejectedError
from ..manifest.patcher import ManifestPatch, patch_manifest
from ..models.release import ReleaseInfo
from ..models.result import DeploymentResult
from ..workspace.archive import unpack_archive
from ..workspace.files import apply_retention, clear_workspace, copy_tree, create_workspace_path

logger = logging.getLogger(__name__)

STAGE_ACQUIRE = "acquire"
STAGE_CLEAR = "clear"
STAGE_FETCH = "fetch"
STAGE_PATCH = "patch"
STAGE_OVERLAY = "overlay"
STAGE_COMMIT = "commit"
STAGE_PUSH = "push"
STAGE_PUBLISH = "publish"

STAGES = (
    STAGE_ACQUIRE,
    STAGE_CLEAR,
    STAGE_FETCH,
    STAGE_PATCH,
    STAGE_OVERLAY,
    STAGE_COMMIT,
    STAGE_PUSH,
    STAGE_PUBLISH,
)

ARCHIVE_NAME = ".release-artifact.zip"


class DeploymentPipeline:
    """Runs the publish sequence for one release against one branch."""

    def __init__(
        self,
        git: GitClient,
        fetcher: ArtifactFetcher,
        announcer: ReleaseAnnouncer,
        workspace_root: Path,
        resources_dir: Path,
        manifest_patch: ManifestPatch,
        retention: str = RETENTION_ON_FAILURE,
    ):
        self.git = git
        self.fetcher = fetcher
        self.announcer = announcer
        self.workspace_root = workspace_root
        self.resources_dir = resources_dir
        self.manifest_patch = manifest_patch
        self.retention = retention

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        api_client: Optional[httpx.Client] = None,
        fetcher: Optional[ArtifactFetcher] = None,
    ) -> "DeploymentPipeline":
        """Wire the pipeline from settings. Clients are created when not given."""
        git = GitClient(
            clone_url=settings.clone_url,
            author_name=settings.author_name,
            author_email=settings.author_email,
            timeout=settings.git_timeout,
            redact=settings.redact,
        )
        return cls(
            git=git,
            fetcher=fetcher or ArtifactFetcher.create(timeout=settings.download_timeout),
            announcer=ReleaseAnnouncer(api_client or build_client(settings), settings.downstream_repo),
            workspace_root=settings.workspace_root,
            resources_dir=settings.resources_dir,
            manifest_patch=ManifestPatch(
                dependency_name=settings.manifest_dependency_name,
                dependency_version=settings.manifest_dependency_version,
                pin_engine=settings.manifest_pin_engine,
                engine=settings.manifest_engine,
            ),
            retention=settings.workspace_retention,
        )

    def deploy(self, release: ReleaseInfo, target: BranchTarget) -> DeploymentResult:
        """
        Mirror `release` into `target.branch_name`.

        Never raises; failures come back as a failed DeploymentResult.
        """
        start = time.time()
        branch = target.branch_name
        log_extra = {"branch": branch, "release": release.name}
        workspace: Optional[Path] = None
        stage = STAGE_ACQUIRE
        commit_sha: Optional[str] = None

        try:
            workspace = create_workspace_path(self.workspace_root)
            logger.info(f"[pipeline] Deploying {release.name} → {branch} in {workspace.name}", extra=log_extra)
            self.git.clone(branch, workspace)

            stage = STAGE_CLEAR
            clear_workspace(workspace)

            stage = STAGE_FETCH
            self._fetch_artifact(release, workspace)

            stage = STAGE_PATCH
            patch_manifest(workspace, self.manifest_patch)

            stage = STAGE_OVERLAY
            copy_tree(self.resources_dir, workspace)

            stage = STAGE_COMMIT
            self.git.stage_all(workspace)
            commit_sha = self.git.commit(workspace, release.commit_message)

            stage = STAGE_PUSH
            self.git.push(workspace, branch)

            stage = STAGE_PUBLISH
            published = self.announcer.publish(release, branch)

        except Exception as e:
            duration_ms = int((time.time() - start) * 1000)
            logger.exception(
                f"[pipeline] {release.name} → {branch} failed at {stage}: {e}",
                extra={**log_extra, "stage": stage},
            )
            result = DeploymentResult.failed(
                release=release.name,
                branch=branch,
                stage=stage,
                error_code=getattr(e, "code", "exception"),
                error_message=str(e),
                workspace=str(workspace) if workspace else None,
                commit_sha=commit_sha,
                duration_ms=duration_ms,
                halts_branch=isinstance(e, PushRejectedError),
            )
        else:
            duration_ms = int((time.time() - start) * 1000)
            logger.info(
                f"[pipeline] {release.name} → {branch} deployed in {duration_ms}ms",
                extra=log_extra,
            )
            result = DeploymentResult.succeeded(
                release=release.name,
                branch=branch,
                commit_sha=commit_sha,
                release_url=published.url,
                workspace=str(workspace),
                duration_ms=duration_ms,
            )

        if workspace is None or not apply_retention(workspace, self.retention, result.ok):
            result.workspace = None
        return result

    def _fetch_artifact(self, release: ReleaseInfo, workspace: Path) -> None:
        if not release.artifact_url:
            raise ArtifactError(f"Release {release.name} has no downloadable artifact")

        archive = workspace / ARCHIVE_NAME
        try:
            self.fetcher.download(release.artifact_url, archive)
            unpack_archive(archive, workspace)
        finally:
            if archive.exists():
                archive.unlink()

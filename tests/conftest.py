"""
Shared fixtures for release-mirror tests.

Provides release builders, an in-memory zip builder, settings rooted in a
temporary directory, and fakes for the git, download and announcement
collaborators so pipeline and orchestrator tests never touch the network
or a real git binary.
"""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from src.adapters.github_release import PublishedRelease
from src.config.settings import BranchTarget, Settings
from src.errors import ArtifactError, PublishError, PushRejectedError
from src.models.release import Release, ReleaseInfo


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_release(name: Optional[str], body: str = "", asset: bool = True) -> Release:
    """Build a feed entry as the API would return it."""
    data = {"name": name, "tag_name": name, "body": body, "assets": []}
    if asset and name:
        data["assets"] = [{
            "name": f"Ghost-{name}.zip",
            "browser_download_url": f"https://example.test/download/{name}.zip",
        }]
    return Release.model_validate(data)


def make_releases(*names: Optional[str]) -> List[Release]:
    return [make_release(n) for n in names]


def build_zip(entries: Dict[str, Optional[bytes]]) -> bytes:
    """Zip from {name: content}; None content writes an empty entry."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content or b"")
    return buf.getvalue()


def ghost_zip(version: str = "3.1.0") -> bytes:
    manifest = {
        "name": "ghost",
        "version": version,
        "dependencies": {"express": "4.17.1"},
        "engines": {"node": "^10.13.0 || ^12.10.0"},
    }
    return build_zip({
        "package.json": json.dumps(manifest, indent=2).encode(),
        "index.js": b"require('./core');\n",
        "LICENSE": b"MIT\n",
        "core/": None,
        "core/server/app.js": b"module.exports = {};\n",
        "content/themes/casper": None,
    })


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeGit:
    """Stands in for GitClient. `clone` creates a workspace with .git in it."""

    def __init__(self, reject_push_for: Optional[List[str]] = None, fail_clone: bool = False):
        self.calls: List[tuple] = []
        self.reject_push_for = reject_push_for or []
        self.fail_clone = fail_clone
        self.pushed: List[str] = []
        self._last_message = ""

    def clone(self, branch: str, destination: Path) -> Path:
        self.calls.append(("clone", branch))
        if self.fail_clone:
            from src.errors import GitError
            raise GitError("git clone failed (exit 128): repository not found")
        (destination / ".git").mkdir(parents=True)
        (destination / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        (destination / "stale.txt").write_text("from the previous release\n")
        return destination

    def stage_all(self, repo: Path) -> None:
        self.calls.append(("stage_all",))

    def commit(self, repo: Path, message: str) -> str:
        self.calls.append(("commit", message))
        self._last_message = message
        return "c0ffee" + str(len(self.calls)).zfill(34)

    def push(self, repo: Path, branch: str) -> None:
        self.calls.append(("push", branch))
        if any(name in self._last_message for name in self.reject_push_for):
            raise PushRejectedError("Push rejected, remote moved: ! [rejected] (fetch first)")
        self.pushed.append(self._last_message)


class FakeFetcher:
    """Stands in for ArtifactFetcher, serving zips by URL."""

    def __init__(self, archives: Optional[Dict[str, bytes]] = None, default: Optional[bytes] = None):
        self.archives = archives or {}
        self.default = default
        self.downloaded: List[str] = []

    def download(self, url: str, destination: Path) -> int:
        self.downloaded.append(url)
        data = self.archives.get(url, self.default)
        if data is None:
            raise ArtifactError(f"Artifact download failed: HTTP 404 for {url}")
        destination.write_bytes(data)
        return len(data)


class FakeAnnouncer:
    """Stands in for ReleaseAnnouncer and records what got published."""

    def __init__(self, fail_for: Optional[List[str]] = None):
        self.published: List[str] = []
        self.fail_for = fail_for or []

    def publish(self, release: ReleaseInfo, branch: str) -> PublishedRelease:
        if release.name in self.fail_for:
            raise PublishError(f"Release creation for {release.name} failed: HTTP 422", status_code=422)
        self.published.append(release.name)
        return PublishedRelease(
            release_id=len(self.published),
            tag=release.tag,
            url=f"https://github.com/acme/ghost-azure/releases/tag/{release.tag}",
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def resources_dir(tmp_path: Path) -> Path:
    """Deployment overlay with a web.config and a nested file."""
    path = tmp_path / "resources"
    (path / "site").mkdir(parents=True)
    (path / "web.config").write_text("<configuration />\n")
    (path / "index.js").write_text("// overlay entry point\n")
    (path / "site" / "iisnode.yml").write_text("loggingEnabled: true\n")
    return path


@pytest.fixture
def settings(tmp_path: Path, resources_dir: Path) -> Settings:
    return Settings(
        git_user_name="mirror-bot",
        git_password="s3cret/token",
        repo_owner="acme",
        repo_name="ghost-azure",
        author_name="Mirror Bot",
        author_email="bot@example.com",
        branches=[
            BranchTarget(branch_name="master", name_prefix="3."),
            BranchTarget(branch_name="v2", name_prefix="2."),
        ],
        resources_dir=resources_dir,
        workspace_root=tmp_path / "workspaces",
    )


@pytest.fixture
def target() -> BranchTarget:
    return BranchTarget(branch_name="master", name_prefix="3.")

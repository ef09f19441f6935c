"""
Git Client — Clone, commit and push the deployment repository.

Runs the `git` executable in a subprocess. Credentials travel inside the
clone URL, so every piece of git output is redacted before it reaches a
log line or an exception message.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Dict, Optional

from ..errors import GitError, PushRejectedError

logger = logging.getLogger(__name__)

# Markers git prints when the remote moved on since we cloned
REJECTION_MARKERS = (
    "[rejected]",
    "non-fast-forward",
    "fetch first",
    "failed to update ref",
    "updates were rejected",
)


def _git(
    repo: Path,
    *args: str,
    timeout: int = 60,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """Run a git command in the repo directory."""
    cmd = ["git"] + list(args)
    return subprocess.run(
        cmd,
        cwd=str(repo),
        capture_output=True,
        text=True,
        timeout=timeout,
        env=env,
    )


def is_push_rejection(output: str) -> bool:
    text = output.lower()
    return any(marker in text for marker in REJECTION_MARKERS)


class GitClient:
    """
    Thin wrapper over the git CLI for one downstream repository.

    All methods raise GitError on a non-zero exit; push raises
    PushRejectedError when the remote refuses a non-fast-forward update.
    """

    def __init__(
        self,
        clone_url: str,
        author_name: str,
        author_email: str,
        timeout: int = 600,
        redact: Optional[Callable[[str], str]] = None,
    ):
        self.clone_url = clone_url
        self.author_name = author_name
        self.author_email = author_email
        self.timeout = timeout
        self._redact = redact or (lambda text: text)

    def _identity_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.update({
            "GIT_AUTHOR_NAME": self.author_name,
            "GIT_AUTHOR_EMAIL": self.author_email,
            "GIT_COMMITTER_NAME": self.author_name,
            "GIT_COMMITTER_EMAIL": self.author_email,
            "GIT_TERMINAL_PROMPT": "0",
        })
        return env

    def _run(self, repo: Path, *args: str, timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        try:
            result = _git(
                repo,
                *args,
                timeout=timeout or self.timeout,
                env=self._identity_env(),
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(f"git {args[0]} timed out after {e.timeout}s") from e
        except OSError as e:
            raise GitError(f"git {args[0]} could not be started: {e}") from e

        if result.returncode != 0:
            output = self._redact((result.stderr or "").strip() or (result.stdout or "").strip())
            raise GitError(
                f"git {args[0]} failed (exit {result.returncode}): {output}",
                returncode=result.returncode,
                stderr=output,
            )
        return result

    def clone(self, branch: str, destination: Path) -> Path:
        """Clone `branch` into `destination` (which must not exist yet)."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"[git] Cloning branch {branch} → {destination.name}")
        self._run(
            destination.parent,
            "clone",
            "--branch", branch,
            "--single-branch",
            self.clone_url,
            str(destination),
        )
        return destination

    def stage_all(self, repo: Path) -> None:
        """Stage additions, modifications and deletions."""
        self._run(repo, "add", "--all")

    def commit(self, repo: Path, message: str) -> Optional[str]:
        """Commit the index as the configured author. Returns the new HEAD sha."""
        self._run(repo, "commit", "--allow-empty", "--no-verify", "-m", message)
        sha = self.head(repo)
        logger.info(f"[git] Committed {sha[:12] if sha else '?'}: {message}")
        return sha

    def push(self, repo: Path, branch: str) -> None:
        """Push HEAD to `branch` on origin."""
        try:
            self._run(repo, "push", "origin", f"HEAD:refs/heads/{branch}")
        except GitError as e:
            if is_push_rejection(e.stderr):
                raise PushRejectedError(
                    f"Push to {branch} rejected, remote moved: {e.stderr}",
                    returncode=e.returncode,
                    stderr=e.stderr,
                ) from e
            raise
        logger.info(f"[git] Pushed to origin/{branch}")

    def head(self, repo: Path) -> Optional[str]:
        try:
            result = _git(repo, "rev-parse", "HEAD", timeout=30)
        except (subprocess.TimeoutExpired, OSError):
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip()

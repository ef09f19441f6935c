"""
Error Types — Failure kinds raised across the mirror.

Feed and pipeline errors never stop the whole process: the orchestrator
records them on its results and moves on. Only configuration errors at
startup are fatal.
"""

from __future__ import annotations

from typing import Optional


class MirrorError(Exception):
    """Base class for all release-mirror errors."""


class ConfigError(MirrorError):
    """Configuration is missing or invalid."""


class RunInProgressError(MirrorError):
    """Another run holds the run lock."""


class FeedError(MirrorError):
    """The release feed was unreachable or returned something unparsable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ReconciliationWarning(UserWarning):
    """The ledger marker exists but cannot be used to compute a backlog."""


class PipelineError(MirrorError):
    """A deployment stage failed."""

    code = "pipeline_failed"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class GitError(PipelineError):
    """A git command exited non-zero."""

    code = "git_failed"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message, stage)
        self.returncode = returncode
        self.stderr = stderr


class PushRejectedError(GitError):
    """The remote refused a push because it moved under us."""

    code = "push_rejected"


class ArtifactError(PipelineError):
    """The release artifact could not be downloaded."""

    code = "artifact_failed"


class ArchiveError(PipelineError):
    """The release archive could not be unpacked."""

    code = "archive_invalid"


class ManifestError(PipelineError):
    """The package manifest is missing or malformed."""

    code = "manifest_invalid"


class PublishError(PipelineError):
    """The downstream release could not be created."""

    code = "publish_failed"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, stage)
        self.status_code = status_code

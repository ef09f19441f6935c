"""
Release Announcer — Create the downstream GitHub release for a mirrored version.

The downstream release list doubles as the mirror's ledger, so creating
the release is what marks a version as done. It is always the last
pipeline stage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..errors import PublishError
from ..models.release import ReleaseInfo
from .github_api import describe_response, releases_path

logger = logging.getLogger(__name__)


@dataclass
class PublishedRelease:
    """What GitHub returned for a created release."""

    release_id: Optional[int]
    tag: str
    url: Optional[str]


class ReleaseAnnouncer:
    """Creates non-draft, non-prerelease releases on the deployment repository."""

    def __init__(self, client: httpx.Client, repo: str):
        self.client = client
        self.repo = repo

    def build_payload(self, release: ReleaseInfo, branch: str) -> dict:
        return {
            "tag_name": release.tag,
            "target_commitish": branch,
            "name": release.name,
            "body": release.notes,
            "draft": False,
            "prerelease": False,
        }

    def publish(self, release: ReleaseInfo, branch: str) -> PublishedRelease:
        """
        Create the release.

        Raises:
            PublishError: On transport error or any status other than 201
        """
        payload = self.build_payload(release, branch)
        try:
            resp = self.client.post(releases_path(self.repo), json=payload)
        except httpx.HTTPError as e:
            raise PublishError(f"Release creation for {release.name} failed: {e}") from e

        if resp.status_code != 201:
            raise PublishError(
                f"Release creation for {release.name} failed: {describe_response(resp)}",
                status_code=resp.status_code,
            )

        data = resp.json()
        published = PublishedRelease(
            release_id=data.get("id"),
            tag=data.get("tag_name", release.tag),
            url=data.get("html_url"),
        )
        logger.info(f"[publish] Release created: {published.url or published.tag}")
        return published

"""
Release Feed Client — Read release lists from the GitHub releases API.

Used for both sides of the mirror: the upstream project (what exists) and
the downstream deployment repository (what has already been announced,
i.e. the ledger).

Errors are never retried here. Any transport failure, unexpected status or
unparsable body raises FeedError; the next scheduled run is the retry.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from ..errors import FeedError
from ..models.release import Release
from .github_api import describe_response, releases_path

logger = logging.getLogger(__name__)

_RELEASE_LIST = TypeAdapter(List[Release])


class ReleaseFeedClient:
    """
    Fetches one page of releases, newest first.

    The API already returns releases newest first; that order is kept.
    """

    def __init__(self, client: httpx.Client, page_size: int = 100):
        self.client = client
        self.page_size = page_size

    def fetch_releases(self, repo: str, name_prefix: str = "") -> List[Release]:
        """
        Fetch releases of `repo` whose name starts with `name_prefix`.

        Raises:
            FeedError: On transport error, non-200 status or bad payload
        """
        path = releases_path(repo)
        try:
            resp = self.client.get(path, params={"per_page": self.page_size})
        except httpx.HTTPError as e:
            raise FeedError(f"Release feed for {repo} unreachable: {e}") from e

        if resp.status_code != 200:
            raise FeedError(
                f"Release feed for {repo} failed: {describe_response(resp)}",
                status_code=resp.status_code,
            )

        try:
            releases = _RELEASE_LIST.validate_json(resp.content)
        except ValidationError as e:
            raise FeedError(f"Release feed for {repo} is not a release list: {e}") from e

        matching = [r for r in releases if r.matches_prefix(name_prefix)]
        logger.info(
            f"[feed] {repo}: {len(matching)} release(s) matching {name_prefix or '*'}x "
            f"(of {len(releases)})"
        )
        return matching

    def fetch_latest_mirrored(self, repo: str, name_prefix: str) -> Optional[Release]:
        """Newest release of `repo` in the given stream, or None if there is none."""
        releases = self.fetch_releases(repo, name_prefix)
        if not releases:
            logger.info(f"[feed] Latest mirrored {name_prefix or '*'}x release: none")
            return None

        latest = releases[0]
        logger.info(f"[feed] Latest mirrored {name_prefix or '*'}x release: {latest.name}")
        return latest

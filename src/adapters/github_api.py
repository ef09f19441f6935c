"""
GitHub API — Shared HTTP client setup for the feed and announcement adapters.

Both adapters talk to the GitHub REST API with the same credentials and
headers, so the client is built in one place. Tests pass their own
`httpx.Client` (usually backed by `httpx.MockTransport`).
"""

from __future__ import annotations

from typing import Dict, Optional

import httpx

from ..config.settings import Settings

USER_AGENT = "release-mirror/1.0"


def get_headers() -> Dict[str, str]:
    """Get GitHub API headers."""
    return {
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
        "X-GitHub-Api-Version": "2022-11-28",
    }


def build_client(settings: Settings, timeout: Optional[float] = None) -> httpx.Client:
    """Create an authenticated client for the GitHub REST API."""
    auth = None
    if settings.git_user_name and settings.git_password:
        auth = httpx.BasicAuth(settings.git_user_name, settings.git_password)
    return httpx.Client(
        base_url=settings.github_api_url,
        headers=get_headers(),
        auth=auth,
        timeout=settings.http_timeout if timeout is None else timeout,
    )


def releases_path(repo: str) -> str:
    return f"/repos/{repo}/releases"


def describe_response(resp: httpx.Response) -> str:
    """Short error description for logs and results."""
    text = resp.text[:200] if resp.content else ""
    return f"HTTP {resp.status_code}: {text}".rstrip(": ")

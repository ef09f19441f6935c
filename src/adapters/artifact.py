"""
Artifact Fetcher — Download release archives to disk.

Release assets are served through redirects to a CDN, so redirects are
followed. The body is streamed to the target file rather than held in
memory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from ..errors import ArtifactError
from .github_api import USER_AGENT

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 64


class ArtifactFetcher:
    """Streams an artifact URL into a local file."""

    def __init__(self, client: httpx.Client):
        self.client = client

    @classmethod
    def create(cls, timeout: float = 300.0) -> "ArtifactFetcher":
        client = httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
        )
        return cls(client)

    def download(self, url: str, destination: Path) -> int:
        """
        Download `url` into `destination`.

        Returns:
            Number of bytes written

        Raises:
            ArtifactError: On transport error or non-2xx status
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        try:
            with self.client.stream("GET", url, follow_redirects=True) as resp:
                if resp.status_code >= 300:
                    raise ArtifactError(f"Artifact download failed: HTTP {resp.status_code} for {url}")
                with destination.open("wb") as f:
                    for chunk in resp.iter_bytes(CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
        except httpx.HTTPError as e:
            raise ArtifactError(f"Artifact download failed for {url}: {e}") from e

        logger.info(f"[artifact] Downloaded {written} bytes → {destination.name}")
        return written

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ArtifactFetcher":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

"""
Release Models — Pydantic schemas for release feed entries.

`Release` mirrors the GitHub releases API payload (only the fields we
read). `ReleaseInfo` is the subset the deployment pipeline works with, so
nothing past the feed client depends on the wire schema.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReleaseAsset(BaseModel):
    """One downloadable asset attached to a release."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = None
    browser_download_url: str


class Release(BaseModel):
    """One entry of a release feed, as returned by the API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = None
    tag_name: Optional[str] = None
    body: Optional[str] = None
    draft: bool = False
    prerelease: bool = False
    assets: List[ReleaseAsset] = Field(default_factory=list)

    @property
    def asset_url(self) -> Optional[str]:
        """URL of the first downloadable asset, if any."""
        if not self.assets:
            return None
        return self.assets[0].browser_download_url

    def matches_prefix(self, prefix: str) -> bool:
        """Case-insensitive name prefix filter. Unnamed releases only match ''."""
        if not prefix:
            return True
        if not self.name:
            return False
        return self.name.lower().startswith(prefix.lower())

    def to_info(self) -> "ReleaseInfo":
        return ReleaseInfo(
            name=self.name or "",
            notes=self.body or "",
            artifact_url=self.asset_url,
        )


class ReleaseInfo(BaseModel):
    """What the pipeline needs to mirror one release."""

    model_config = ConfigDict(frozen=True)

    name: str
    notes: str = ""
    artifact_url: Optional[str] = None

    @property
    def tag(self) -> str:
        return self.name

    @property
    def commit_message(self) -> str:
        return f"Add v{self.name}"

"""
Manifest Patcher — Adapt the mirrored package.json for the deployment host.

Only two fields are touched: one dependency is injected (or overwritten)
and, optionally, an engine range is narrowed to its upper bound, e.g.

    "node": "^12.10.0 || ^14.15.0 || ^16.13.0"  ->  "node": "^16.13.0"

The rest of the document is kept verbatim and in its original key order.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"


class ManifestPatchView(BaseModel):
    """Typed view of the manifest fields the patch touches."""

    model_config = ConfigDict(extra="ignore")

    dependencies: Dict[str, str] = Field(default_factory=dict)
    engines: Dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class ManifestPatch:
    """What to change in the manifest."""

    dependency_name: str
    dependency_version: str
    pin_engine: bool = True
    engine: str = "node"


def upper_bound(version_range: str) -> str:
    """Last alternative of an `a || b || c` range, stripped."""
    alternatives = [part.strip() for part in version_range.split("||")]
    alternatives = [part for part in alternatives if part]
    return alternatives[-1] if alternatives else version_range.strip()


def apply_patch(document: Dict[str, Any], patch: ManifestPatch) -> Dict[str, Any]:
    """
    Apply the patch to a parsed manifest, in place.

    Raises:
        ManifestError: If dependencies/engines are not string maps
    """
    try:
        view = ManifestPatchView.model_validate(document)
    except ValidationError as e:
        raise ManifestError(f"{MANIFEST_NAME} has an unexpected shape: {e}") from e

    if patch.dependency_name:
        # Write back into the original mapping so other entries keep their order
        deps = document.get("dependencies")
        if not isinstance(deps, dict):
            deps = document["dependencies"] = {}
        deps[patch.dependency_name] = patch.dependency_version

    if patch.pin_engine:
        current: Optional[str] = view.engines.get(patch.engine)
        if current:
            pinned = upper_bound(current)
            document["engines"][patch.engine] = pinned
            if pinned != current:
                logger.debug(f"[manifest] engines.{patch.engine}: {current!r} → {pinned!r}")

    return document


def patch_manifest(workspace: Path, patch: ManifestPatch) -> Dict[str, Any]:
    """
    Patch `package.json` in the workspace root and rewrite it.

    Output is 2-space indented JSON with a trailing newline.

    Raises:
        ManifestError: If the manifest is missing or malformed
    """
    path = workspace / MANIFEST_NAME
    if not path.is_file():
        raise ManifestError(f"{MANIFEST_NAME} not found in workspace")

    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestError(f"{MANIFEST_NAME} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise ManifestError(f"{MANIFEST_NAME} must contain a JSON object")

    apply_patch(document, patch)

    path.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info(
        f"[manifest] Patched {MANIFEST_NAME}: {patch.dependency_name}@{patch.dependency_version}"
    )
    return document

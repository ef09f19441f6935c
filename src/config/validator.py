"""
Configuration Validator — Check mirror configuration before a run.

Validates that credentials, repository identity, commit author and branch
targets are present, and that the overlay directory exists, so a
misconfigured deployment fails loudly at startup rather than once per
release.

## Usage

    from src.config.validator import ConfigValidator

    validator = ConfigValidator(settings)
    status = validator.validate_all()

    for component, result in status.items():
        if not result.configured:
            print(f"{component}: Missing {result.missing}")
            print(f"  → {result.guidance}")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ConfigStatus:
    """Status of a configuration check."""

    component: str
    configured: bool
    missing: List[str] = field(default_factory=list)
    present: List[str] = field(default_factory=list)
    guidance: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for logging."""
        return {
            "component": self.component,
            "configured": self.configured,
            "missing": self.missing,
            "detail": self.detail,
            "guidance": self.guidance,
        }


# Component configuration requirements
COMPONENT_REQUIREMENTS = {
    "credentials": {
        "required": ["GIT_USER_NAME", "GIT_PASSWORD"],
        "guidance": "Create a personal access token at https://github.com/settings/tokens (repo scope)",
    },
    "downstream": {
        "required": ["GIT_REPO_OWNER", "GIT_REPO_NAME"],
        "guidance": "Set the owner and name of the deployment repository",
    },
    "author": {
        "required": ["GIT_AUTHOR_NAME", "GIT_AUTHOR_EMAIL"],
        "guidance": "Set the identity used for mirror commits",
    },
    "branches": {
        "required": ["MIRROR_1_BRANCH", "MIRROR_1_PREFIX"],
        "guidance": "Map each release stream to a branch, e.g. MIRROR_1_BRANCH=master MIRROR_1_PREFIX=3.",
    },
    "resources": {
        "required": ["RESOURCES_DIR"],
        "guidance": "Point RESOURCES_DIR at the deployment overlay directory",
    },
}


class ConfigValidator:
    """
    Validate parsed mirror settings.

    Works on a `Settings` instance so master-key and individual-var
    configuration are checked the same way.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.requirements = COMPONENT_REQUIREMENTS
        self._checks: Dict[str, Callable[[], ConfigStatus]] = {
            "credentials": self._check_credentials,
            "downstream": self._check_downstream,
            "author": self._check_author,
            "branches": self._check_branches,
            "resources": self._check_resources,
        }

    def _status(self, component: str, values: Dict[str, str], detail: Optional[str] = None) -> ConfigStatus:
        missing = [name for name, value in values.items() if not value]
        present = [name for name, value in values.items() if value]
        return ConfigStatus(
            component=component,
            configured=not missing,
            missing=missing,
            present=present,
            guidance=self.requirements[component]["guidance"] if missing else None,
            detail=detail,
        )

    def _check_credentials(self) -> ConfigStatus:
        return self._status(
            "credentials",
            {
                "GIT_USER_NAME": self.settings.git_user_name,
                "GIT_PASSWORD": self.settings.git_password,
            },
        )

    def _check_downstream(self) -> ConfigStatus:
        return self._status(
            "downstream",
            {
                "GIT_REPO_OWNER": self.settings.repo_owner,
                "GIT_REPO_NAME": self.settings.repo_name,
            },
            detail=f"{self.settings.upstream_repo} → {self.settings.downstream_repo}",
        )

    def _check_author(self) -> ConfigStatus:
        return self._status(
            "author",
            {
                "GIT_AUTHOR_NAME": self.settings.author_name,
                "GIT_AUTHOR_EMAIL": self.settings.author_email,
            },
        )

    def _check_branches(self) -> ConfigStatus:
        if not self.settings.branches:
            return ConfigStatus(
                component="branches",
                configured=False,
                missing=list(self.requirements["branches"]["required"]),
                guidance=self.requirements["branches"]["guidance"],
            )
        return ConfigStatus(
            component="branches",
            configured=True,
            detail=", ".join(t.display_name for t in self.settings.branches),
        )

    def _check_resources(self) -> ConfigStatus:
        path = self.settings.resources_dir
        if path.is_dir():
            return ConfigStatus(component="resources", configured=True, detail=str(path))
        return ConfigStatus(
            component="resources",
            configured=False,
            missing=["RESOURCES_DIR"],
            guidance=self.requirements["resources"]["guidance"],
            detail=f"{path} does not exist",
        )

    def validate_component(self, component: str) -> ConfigStatus:
        """
        Check if one component is properly configured.

        Args:
            component: Name of the component to check

        Returns:
            ConfigStatus with details about configuration state
        """
        check = self._checks.get(component)
        if check is None:
            return ConfigStatus(
                component=component,
                configured=False,
                guidance=f"Unknown component: {component}",
            )
        return check()

    def validate_all(self) -> Dict[str, ConfigStatus]:
        """Validate every known component."""
        return {name: self.validate_component(name) for name in self._checks}

    def log_status(self) -> None:
        """Log configuration status for all components."""
        results = self.validate_all()

        for name, status in results.items():
            if status.configured:
                logger.info(f"✓ {name}: configured" + (f" ({status.detail})" if status.detail else ""))
            else:
                logger.warning(
                    f"✗ {name}: not configured (missing: {', '.join(status.missing)})"
                )

        ready = sum(1 for s in results.values() if s.configured)
        logger.info(f"Config summary: {ready}/{len(results)} components configured")

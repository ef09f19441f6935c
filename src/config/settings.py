"""
Mirror Settings — Parse configuration from environment variables.

Settings are read once at process start and passed explicitly into the
orchestrator and pipeline. Two sources are supported:

1. Master JSON key: a single RELEASE_MIRROR_CONFIG env var
2. Individual env vars (fill in anything the master key left out)

Minimal required config:
    GIT_USER_NAME=mirror-bot
    GIT_PASSWORD=ghp_xxxxx
    GIT_REPO_OWNER=my-org
    GIT_REPO_NAME=ghost-azure
    GIT_AUTHOR_NAME=Mirror Bot
    GIT_AUTHOR_EMAIL=bot@example.com
    MIRROR_1_BRANCH=master
    MIRROR_1_PREFIX=3.

Branch targets are MIRROR_N_BRANCH / MIRROR_N_PREFIX pairs (N = 1..10).
The legacy GIT_REPO_BRANCH / GIT_REPO_BRANCH_V2 pair maps to the "3." and
"2." release streams when no MIRROR_N_* slot is set.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote, urlsplit

from ..errors import ConfigError

logger = logging.getLogger(__name__)

MASTER_CONFIG_VAR = "RELEASE_MIRROR_CONFIG"
MAX_BRANCH_SLOTS = 10
MAX_PAGE_SIZE = 100

RETENTION_ALWAYS = "always"
RETENTION_ON_FAILURE = "on-failure"
RETENTION_NEVER = "never"
RETENTION_POLICIES = (RETENTION_ALWAYS, RETENTION_ON_FAILURE, RETENTION_NEVER)

LEGACY_BRANCH_VARS = (
    ("GIT_REPO_BRANCH", "3."),
    ("GIT_REPO_BRANCH_V2", "2."),
)

REQUIRED_VARS = (
    "GIT_USER_NAME",
    "GIT_PASSWORD",
    "GIT_REPO_OWNER",
    "GIT_REPO_NAME",
    "GIT_AUTHOR_NAME",
    "GIT_AUTHOR_EMAIL",
)

# Every scalar key the master JSON may carry
KNOWN_VARS = REQUIRED_VARS + (
    "UPSTREAM_REPO",
    "GIT_REPO_BRANCH",
    "GIT_REPO_BRANCH_V2",
    "RESOURCES_DIR",
    "WORKSPACE_ROOT",
    "WORKSPACE_RETENTION",
    "MANIFEST_DEPENDENCY_NAME",
    "MANIFEST_DEPENDENCY_VERSION",
    "MANIFEST_PIN_ENGINE",
    "MANIFEST_ENGINE",
    "FEED_PAGE_SIZE",
    "HTTP_TIMEOUT_SECONDS",
    "DOWNLOAD_TIMEOUT_SECONDS",
    "GIT_TIMEOUT_SECONDS",
    "PARALLEL_BRANCHES",
    "GITHUB_API_URL",
    "GITHUB_URL",
)


def _truthy(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def default_project_root() -> Path:
    return Path(__file__).parent.parent.parent


@dataclass(frozen=True)
class BranchTarget:
    """One mirrored release stream: upstream names matching a prefix land on a branch."""

    branch_name: str
    name_prefix: str

    @property
    def display_name(self) -> str:
        return f"{self.branch_name} ({self.name_prefix or '*'}x)"


@dataclass
class Settings:
    """Everything a run needs, built once at startup."""

    git_user_name: str = ""
    git_password: str = ""
    repo_owner: str = ""
    repo_name: str = ""
    author_name: str = ""
    author_email: str = ""
    upstream_repo: str = "TryGhost/Ghost"
    branches: List[BranchTarget] = field(default_factory=list)

    resources_dir: Path = field(default_factory=lambda: default_project_root() / "deployment" / "azure")
    workspace_root: Path = field(default_factory=lambda: default_project_root() / "workspaces")
    workspace_retention: str = RETENTION_ON_FAILURE

    manifest_dependency_name: str = "applicationinsights"
    manifest_dependency_version: str = "^1.0.8"
    manifest_pin_engine: bool = True
    manifest_engine: str = "node"

    feed_page_size: int = MAX_PAGE_SIZE
    http_timeout: float = 30.0
    download_timeout: float = 300.0
    git_timeout: int = 600
    parallel_branches: bool = False

    github_api_url: str = "https://api.github.com"
    github_url: str = "https://github.com"

    @property
    def downstream_repo(self) -> str:
        """owner/name of the deployment repository."""
        return f"{self.repo_owner}/{self.repo_name}"

    @property
    def clone_url(self) -> str:
        """HTTPS clone URL with credentials embedded."""
        parts = urlsplit(self.github_url)
        scheme = parts.scheme or "https"
        host = parts.netloc or parts.path.strip("/")
        user = quote(self.git_user_name, safe="")
        password = quote(self.git_password, safe="")
        return f"{scheme}://{user}:{password}@{host}/{self.downstream_repo}.git"

    @property
    def secrets(self) -> List[str]:
        """Values that must never show up in logs."""
        values = [self.git_password, quote(self.git_password, safe="")]
        return [v for v in values if v]

    def missing_required(self) -> List[str]:
        values = {
            "GIT_USER_NAME": self.git_user_name,
            "GIT_PASSWORD": self.git_password,
            "GIT_REPO_OWNER": self.repo_owner,
            "GIT_REPO_NAME": self.repo_name,
            "GIT_AUTHOR_NAME": self.author_name,
            "GIT_AUTHOR_EMAIL": self.author_email,
        }
        return [name for name, value in values.items() if not value]

    def get_branch(self, branch_name: str) -> Optional[BranchTarget]:
        for target in self.branches:
            if target.branch_name == branch_name:
                return target
        return None

    def redact(self, text: str) -> str:
        """Replace credentials in text (git output, URLs) with ***."""
        for secret in self.secrets:
            text = text.replace(secret, "***")
        return text

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        project_root: Optional[Path] = None,
        strict: bool = False,
    ) -> "Settings":
        """
        Build settings from the environment.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            project_root: Base for relative RESOURCES_DIR / WORKSPACE_ROOT
            strict: Raise ConfigError when required values are missing

        Raises:
            ConfigError: On malformed values, or missing values in strict mode
        """
        env: Dict[str, str] = dict(os.environ if environ is None else environ)
        root = project_root or default_project_root()

        master = _load_master_config(env)
        # Master key first, individual vars fill in the rest
        merged = {**env, **master}

        def get(name: str, default: Optional[str] = None) -> Optional[str]:
            value = merged.get(name)
            return default if value is None or value == "" else value

        retention = (get("WORKSPACE_RETENTION") or RETENTION_ON_FAILURE).lower()
        if retention not in RETENTION_POLICIES:
            raise ConfigError(
                f"WORKSPACE_RETENTION must be one of {', '.join(RETENTION_POLICIES)}, got {retention!r}"
            )

        page_size = _parse_int(get("FEED_PAGE_SIZE"), MAX_PAGE_SIZE, "FEED_PAGE_SIZE")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ConfigError(f"FEED_PAGE_SIZE must be between 1 and {MAX_PAGE_SIZE}")

        settings = cls(
            git_user_name=get("GIT_USER_NAME", "") or "",
            git_password=get("GIT_PASSWORD", "") or "",
            repo_owner=get("GIT_REPO_OWNER", "") or "",
            repo_name=get("GIT_REPO_NAME", "") or "",
            author_name=get("GIT_AUTHOR_NAME", "") or "",
            author_email=get("GIT_AUTHOR_EMAIL", "") or "",
            upstream_repo=get("UPSTREAM_REPO", "TryGhost/Ghost") or "TryGhost/Ghost",
            branches=_load_branches(merged),
            resources_dir=_resolve(root, get("RESOURCES_DIR", "deployment/azure")),
            workspace_root=_resolve(root, get("WORKSPACE_ROOT", "workspaces")),
            workspace_retention=retention,
            manifest_dependency_name=get("MANIFEST_DEPENDENCY_NAME", "applicationinsights") or "",
            manifest_dependency_version=get("MANIFEST_DEPENDENCY_VERSION", "^1.0.8") or "",
            manifest_pin_engine=_truthy(get("MANIFEST_PIN_ENGINE"), default=True),
            manifest_engine=get("MANIFEST_ENGINE", "node") or "node",
            feed_page_size=page_size,
            http_timeout=_parse_float(get("HTTP_TIMEOUT_SECONDS"), 30.0, "HTTP_TIMEOUT_SECONDS"),
            download_timeout=_parse_float(get("DOWNLOAD_TIMEOUT_SECONDS"), 300.0, "DOWNLOAD_TIMEOUT_SECONDS"),
            git_timeout=_parse_int(get("GIT_TIMEOUT_SECONDS"), 600, "GIT_TIMEOUT_SECONDS"),
            parallel_branches=_truthy(get("PARALLEL_BRANCHES")),
            github_api_url=(get("GITHUB_API_URL") or "https://api.github.com").rstrip("/"),
            github_url=(get("GITHUB_URL") or "https://github.com").rstrip("/"),
        )

        if strict:
            missing = settings.missing_required()
            if missing:
                raise ConfigError(f"Missing required settings: {', '.join(missing)}")
            if not settings.branches:
                raise ConfigError("No branch targets configured (set MIRROR_1_BRANCH and MIRROR_1_PREFIX)")

        return settings


def _resolve(root: Path, value: Optional[str]) -> Path:
    path = Path(value or ".").expanduser()
    return path if path.is_absolute() else root / path


def _parse_int(value: Optional[str], default: int, name: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _parse_float(value: Optional[str], default: float, name: str) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}")


def _load_master_config(env: Mapping[str, str]) -> Dict[str, str]:
    """Flatten RELEASE_MIRROR_CONFIG into upper-case env-style keys."""
    raw = env.get(MASTER_CONFIG_VAR)
    if not raw:
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid {MASTER_CONFIG_VAR} JSON: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{MASTER_CONFIG_VAR} must be a JSON object")

    result: Dict[str, str] = {}
    for key, value in data.items():
        if value is None or key.startswith("#"):
            continue
        if key.lower() == "branches" and isinstance(value, list):
            result.update(_flatten_branches(value))
            continue
        name = key.upper()
        if name not in KNOWN_VARS and not name.startswith("MIRROR_"):
            logger.warning(f"{MASTER_CONFIG_VAR}: ignoring unknown key {key!r}")
            continue
        result[name] = str(value).lower() if isinstance(value, bool) else str(value)

    logger.info(f"Loaded configuration from {MASTER_CONFIG_VAR}")
    return result


def _flatten_branches(entries: List[Any]) -> Dict[str, str]:
    """[{"branch": "master", "prefix": "3."}] -> MIRROR_1_BRANCH / MIRROR_1_PREFIX."""
    result: Dict[str, str] = {}
    for i, entry in enumerate(entries[:MAX_BRANCH_SLOTS], start=1):
        if not isinstance(entry, dict):
            raise ConfigError(f"{MASTER_CONFIG_VAR} branches[{i - 1}] must be an object")
        result[f"MIRROR_{i}_BRANCH"] = str(entry.get("branch", ""))
        result[f"MIRROR_{i}_PREFIX"] = str(entry.get("prefix", ""))
    return result


def _load_branches(values: Mapping[str, str]) -> List[BranchTarget]:
    targets: List[BranchTarget] = []

    # Scan for MIRROR_N_* variables (N = 1..10)
    for i in range(1, MAX_BRANCH_SLOTS + 1):
        prefix_key = f"MIRROR_{i}_"
        branch = values.get(f"{prefix_key}BRANCH")
        name_prefix = values.get(f"{prefix_key}PREFIX")

        if not branch and name_prefix is None:
            continue
        if not branch:
            logger.warning(f"MIRROR_{i}: Missing MIRROR_{i}_BRANCH, skipping")
            continue
        if name_prefix is None:
            logger.warning(f"MIRROR_{i}: Missing MIRROR_{i}_PREFIX, skipping")
            continue

        targets.append(BranchTarget(branch_name=branch, name_prefix=name_prefix))

    if targets:
        return _dedupe(targets)

    for var, name_prefix in LEGACY_BRANCH_VARS:
        branch = values.get(var)
        if branch:
            targets.append(BranchTarget(branch_name=branch, name_prefix=name_prefix))

    return _dedupe(targets)


def _dedupe(targets: List[BranchTarget]) -> List[BranchTarget]:
    seen = set()
    unique = []
    for target in targets:
        if target.branch_name in seen:
            raise ConfigError(f"Branch {target.branch_name!r} is configured more than once")
        seen.add(target.branch_name)
        unique.append(target)
    return unique

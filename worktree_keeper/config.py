"""Configuration handling for worktree-keeper"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from worktree_keeper.constants import (
    DEFAULT_CLONE_TIMEOUT,
    DEFAULT_CLONE_URL_TEMPLATE,
    DEFAULT_GIT_TIMEOUT,
    DEFAULT_GITHUB_ORG,
    DEFAULT_REPO_ROOT,
    DEFAULT_REPOSITORIES,
    REPOSITORY_NAME_PATTERN,
    TOKEN_FILES,
    WORKTREE_DIR_NAME,
)
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.repository import RepositoryDescriptor

logger = get_logger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _default_repositories() -> Dict[str, str]:
    return {default_key: default_name for _, default_key, _, default_name in DEFAULT_REPOSITORIES}


@dataclass(frozen=True)
class Config:
    """Configuration for worktree-keeper with validation.

    Built once at startup; components receive it by reference and never
    consult the environment themselves.
    """

    # Container-side roots
    repo_root: Path = Path(DEFAULT_REPO_ROOT)
    worktree_root: Optional[Path] = None  # None = <repo_root>/Tree
    # Host-side root, only used to translate git pointer files
    host_root: Optional[Path] = None  # None = same as repo_root

    # Repository map: key -> canonical (upstream) name
    repositories: Dict[str, str] = field(default_factory=_default_repositories)
    github_org: Optional[str] = DEFAULT_GITHUB_ORG
    clone_url_template: str = DEFAULT_CLONE_URL_TEMPLATE
    github_token: Optional[str] = None

    # Subprocess bounds, in seconds
    git_timeout: float = DEFAULT_GIT_TIMEOUT
    clone_timeout: float = DEFAULT_CLONE_TIMEOUT

    file_locks: bool = True  # Also take an flock so several processes can share repo_root
    backlog_enabled: bool = False
    max_workers: Optional[int] = None  # Parallel repositories in create_many (None = one per repo)

    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        object.__setattr__(self, "repo_root", Path(self.repo_root))
        if self.worktree_root is None:
            object.__setattr__(self, "worktree_root", self.repo_root / WORKTREE_DIR_NAME)
        else:
            object.__setattr__(self, "worktree_root", Path(self.worktree_root))
        if self.host_root is None:
            object.__setattr__(self, "host_root", self.repo_root)
        else:
            object.__setattr__(self, "host_root", Path(self.host_root))

        self._validate_roots()
        self._validate_timeouts()
        self._validate_repositories()
        self._validate_clone_url_template()
        self._validate_max_workers()

    def _validate_roots(self):
        """Validate every root is absolute."""
        for name in ("repo_root", "worktree_root", "host_root"):
            value = getattr(self, name)
            if not value.is_absolute():
                raise ValueError(f"{name} must be an absolute path, got '{value}'")

    def _validate_timeouts(self):
        """Validate timeouts are positive."""
        if self.git_timeout <= 0:
            raise ValueError(f"git_timeout must be positive, got {self.git_timeout}")
        if self.clone_timeout <= 0:
            raise ValueError(f"clone_timeout must be positive, got {self.clone_timeout}")

    def _validate_repositories(self):
        """Validate keys and names, and that no upstream is configured twice."""
        if not isinstance(self.repositories, dict):
            raise ValueError("repositories must be a mapping of key to repository name")

        seen_names = set()
        for key, name in self.repositories.items():
            if not key or not REPOSITORY_NAME_PATTERN.fullmatch(key):
                raise ValueError(f"Invalid repository key '{key}'")
            if not name or not REPOSITORY_NAME_PATTERN.fullmatch(name):
                raise ValueError(f"Invalid repository name '{name}' for key '{key}'")
            if name in seen_names:
                raise ValueError(f"Repository '{name}' is configured under more than one key")
            seen_names.add(name)

    def _validate_clone_url_template(self):
        """Validate the clone URL template can be filled in."""
        if "{name}" not in self.clone_url_template:
            raise ValueError("clone_url_template must contain '{name}'")
        if "{org}" in self.clone_url_template and not self.github_org:
            raise ValueError("github_org is required by clone_url_template")

    def _validate_max_workers(self):
        """Validate max_workers is positive when given."""
        if self.max_workers is not None and self.max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")

    @property
    def has_path_translation(self) -> bool:
        return self.host_root != self.repo_root

    def clone_url_for(self, name: str) -> str:
        return self.clone_url_template.format(org=self.github_org or "", name=name)

    def descriptors(self) -> Tuple[RepositoryDescriptor, ...]:
        """Repository descriptors in configuration order."""
        return tuple(
            RepositoryDescriptor(
                key=key,
                canonical_name=name,
                clone_url=self.clone_url_for(name),
                local_path=self.repo_root / name,
            )
            for key, name in self.repositories.items()
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary, with the token masked."""
        return {
            "repo_root": str(self.repo_root),
            "worktree_root": str(self.worktree_root),
            "host_root": str(self.host_root),
            "repositories": dict(self.repositories),
            "github_org": self.github_org,
            "clone_url_template": self.clone_url_template,
            "github_token": "***" if self.github_token else None,
            "git_timeout": self.git_timeout,
            "clone_timeout": self.clone_timeout,
            "file_locks": self.file_locks,
            "backlog_enabled": self.backlog_enabled,
            "max_workers": self.max_workers,
            "verbose": self.verbose,
            "debug": self.debug,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        # Extract only known fields
        known_fields = set(cls.__dataclass_fields__)
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Config":
        """Create Config from environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            overrides: Field values that win over the environment
        """
        env = os.environ if environ is None else environ
        repo_root = Path(env.get("REPO_ROOT") or DEFAULT_REPO_ROOT)

        values = {
            "repo_root": repo_root,
            "worktree_root": env.get("WORKTREE_ROOT") or None,
            "host_root": env.get("HOST_REPO_ROOT") or None,
            "repositories": parse_repositories(env),
            "github_org": env.get("GITHUB_ORG") or DEFAULT_GITHUB_ORG,
            "clone_url_template": env.get("CLONE_URL_TEMPLATE") or DEFAULT_CLONE_URL_TEMPLATE,
            "github_token": find_github_token(repo_root, env),
            "git_timeout": float(env.get("GIT_TIMEOUT") or DEFAULT_GIT_TIMEOUT),
            "clone_timeout": float(env.get("GIT_CLONE_TIMEOUT") or DEFAULT_CLONE_TIMEOUT),
            "file_locks": _env_flag(env, "WORKTREE_FILE_LOCKS", True),
            "backlog_enabled": _env_flag(env, "WORKTREE_BACKLOG", False),
        }
        values.update(overrides)
        return cls(**values)


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def parse_repositories(env: Mapping[str, str]) -> Dict[str, str]:
    """Build the key -> name map.

    ``WORKTREE_REPOSITORIES=key=name,key2=name2`` replaces the defaults
    entirely; otherwise each default key and name can be overridden on its own.
    """
    value = env.get("WORKTREE_REPOSITORIES")
    if value:
        repositories = {}
        for item in value.split(","):
            item = item.strip()
            if not item:
                continue
            key, sep, name = item.partition("=")
            if not sep:
                raise ValueError(f"Invalid WORKTREE_REPOSITORIES entry '{item}', expected key=name")
            repositories[key.strip()] = name.strip()
        return repositories

    return {
        env.get(key_var) or default_key: env.get(name_var) or default_name
        for key_var, default_key, name_var, default_name in DEFAULT_REPOSITORIES
    }


def find_github_token(repo_root: Path, env: Mapping[str, str]) -> Optional[str]:
    """Return GITHUB_TOKEN, else the first readable token file near repo_root."""
    token = env.get("GITHUB_TOKEN")
    if token and token.strip():
        return token.strip()

    for relative in TOKEN_FILES:
        token_file = repo_root / relative
        try:
            if token_file.is_file():
                token = token_file.read_text(encoding="utf-8").strip()
                if token:
                    logger.debug(f"Using GitHub token from {token_file}")
                    return token
        except OSError as e:
            logger.debug(f"Could not read token file {token_file}: {e}")

    return None

"""Worktree data models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from worktree_keeper.constants import NAME_PATTERN
from worktree_keeper.exceptions import InvalidWorktreeNameError, WorktreeKeeperError
from worktree_keeper.models.repository import RepositoryDescriptor


class ChangeType(Enum):
    """Kind of change a worktree is for; the second segment of its branch name."""
    FEATURE = "feature"
    BUGFIX = "bugfix"
    FIX = "fix"
    QA = "qa"

    @classmethod
    def parse(cls, value: Union[str, "ChangeType"]) -> "ChangeType":
        if isinstance(value, ChangeType):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(ct.value for ct in cls)
            raise InvalidWorktreeNameError(f"Invalid type '{value}'. Must be one of: {allowed}")

    @classmethod
    def values(cls) -> List[str]:
        return [ct.value for ct in cls]


def split_branch_name(canonical_name: str, branch_name: str) -> Optional[Tuple[ChangeType, str]]:
    """Split ``<canonical>-<type>-<name>`` into (type, name).

    Returns None for anything outside the naming convention, including
    unrecognized change types.
    """
    prefix = f"{canonical_name}-"
    if not branch_name.startswith(prefix):
        return None

    type_token, sep, name = branch_name[len(prefix):].partition("-")
    if not sep or not name or not NAME_PATTERN.fullmatch(name):
        return None
    if type_token not in ChangeType.values():
        return None
    return ChangeType(type_token), name


@dataclass(frozen=True)
class WorktreeIdentity:
    """Desired worktree: repository, change type and name.

    Branch name and path are derived, never stored.
    """

    repository: RepositoryDescriptor
    change_type: ChangeType
    name: str

    def __post_init__(self):
        if not isinstance(self.change_type, ChangeType):
            object.__setattr__(self, "change_type", ChangeType.parse(self.change_type))
        if not self.name or not NAME_PATTERN.fullmatch(self.name):
            raise InvalidWorktreeNameError(
                f"Invalid worktree name '{self.name}': only letters, digits, '_' and '-' are allowed"
            )

    @property
    def branch_name(self) -> str:
        return f"{self.repository.canonical_name}-{self.change_type.value}-{self.name}"

    def worktree_path(self, worktree_root: Path) -> Path:
        return Path(worktree_root) / self.repository.canonical_name / self.branch_name

    @classmethod
    def from_branch_name(
        cls, repository: RepositoryDescriptor, branch_name: str
    ) -> Optional["WorktreeIdentity"]:
        """Recover an identity from a branch or worktree directory name."""
        parsed = split_branch_name(repository.canonical_name, branch_name)
        if parsed is None:
            return None
        change_type, name = parsed
        return cls(repository=repository, change_type=change_type, name=name)

    def __str__(self) -> str:
        return self.branch_name


@dataclass
class WorktreeEntry:
    """One entry of ``git worktree list --porcelain``."""

    path: str
    branch_name: str
    commit_sha: str
    is_main: bool  # Is this the main working tree?
    is_prunable: bool  # Registered, but the directory is gone
    is_locked: bool = False

    def __str__(self) -> str:
        status = "prunable" if self.is_prunable else "active"
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch_name or '(detached)'} @ {self.path}{main_marker} [{status}]"


@dataclass
class WorktreeRecord:
    """Observed state of a worktree. Never persisted."""

    identity: WorktreeIdentity
    path: str
    actual_branch: str
    registered_in_git: bool
    directory_exists: bool

    @property
    def branch_name(self) -> str:
        return self.identity.branch_name

    @property
    def is_consistent(self) -> bool:
        return (
            self.registered_in_git
            and self.directory_exists
            and self.actual_branch == self.identity.branch_name
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "repository_key": self.identity.repository.key,
            "canonical_name": self.identity.repository.canonical_name,
            "change_type": self.identity.change_type.value,
            "name": self.identity.name,
            "branch": self.actual_branch,
            "path": self.path,
            "registered_in_git": self.registered_in_git,
            "directory_exists": self.directory_exists,
        }


@dataclass
class BatchResult:
    """Outcome of creating the same worktree in several repositories."""

    worktrees: List[WorktreeRecord] = field(default_factory=list)
    errors: Dict[str, WorktreeKeeperError] = field(default_factory=dict)

    @property
    def all_failed(self) -> bool:
        return not self.worktrees and bool(self.errors)

    def to_dict(self) -> Dict[str, object]:
        return {
            "worktrees": [record.to_dict() for record in self.worktrees],
            "errors": [
                {"repo": identifier, "error": str(error)}
                for identifier, error in self.errors.items()
            ],
        }

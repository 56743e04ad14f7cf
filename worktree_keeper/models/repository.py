"""Repository descriptor model."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RepositoryDescriptor:
    """A configured upstream repository and its local clone.

    ``canonical_name`` is the upstream repository name and the identity;
    ``key`` is the caller-facing alias.
    """

    key: str
    canonical_name: str
    clone_url: str
    local_path: Path

    @property
    def git_dir(self) -> Path:
        return self.local_path / ".git"

    def is_cloned(self) -> bool:
        """True when the local clone has a .git directory."""
        return self.local_path.is_dir() and self.git_dir.exists()

    def __str__(self) -> str:
        return f"{self.canonical_name} ({self.key})"

"""Git-related services for worktree-keeper."""

from .commands import GitCommands
from .worktrees import WorktreeService

__all__ = [
    "GitCommands",
    "WorktreeService",
]

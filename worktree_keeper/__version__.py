"""Version information for worktree-keeper."""

__version__ = "0.1.0"

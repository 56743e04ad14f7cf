"""
worktree-keeper - Reconciles git worktrees across a set of repositories
"""

from .__version__ import __version__
from .config import Config
from .core import WorktreeKeeper
from .cli.main import main

__all__ = ["WorktreeKeeper", "Config", "main", "__version__"]

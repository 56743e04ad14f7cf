"""Worktree registry operations for one repository clone."""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from worktree_keeper.exceptions import GitOperationError
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.worktree import WorktreeEntry
from worktree_keeper.services.git.commands import GitCommands
from worktree_keeper.services.path_translator import PathTranslator

logger = get_logger(__name__)


def parse_porcelain(output: str) -> List[Dict[str, Any]]:
    """Parse ``git worktree list --porcelain`` into one dict per worktree.

    Format:
        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name     (or "detached")
        locked [reason]                   (optional)
        prunable reason                   (optional)
        (blank line between worktrees)
    """
    entries: List[Dict[str, Any]] = []
    current: Dict[str, Any] = {}

    for line in output.split("\n"):
        line = line.strip()

        if not line:
            # Empty line marks end of worktree entry
            if current.get("path"):
                entries.append(current)
            current = {}
            continue

        if line.startswith("worktree "):
            current["path"] = line.split(" ", 1)[1]
            # First worktree in list is always the main one
            current["is_main"] = not entries
        elif line.startswith("HEAD "):
            current["HEAD"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            branch_ref = line.split(" ", 1)[1]
            if branch_ref.startswith("refs/heads/"):
                current["branch"] = branch_ref[len("refs/heads/"):]
            else:
                current["branch"] = ""
        elif line == "detached":
            current["branch"] = ""
        elif line == "bare":
            current["bare"] = True
        elif line == "locked" or line.startswith("locked "):
            current["locked"] = True
        elif line == "prunable" or line.startswith("prunable "):
            current["prunable"] = True

    # Handle last entry if no trailing blank line
    if current.get("path"):
        entries.append(current)

    return entries


class WorktreeService:
    """Reads and mutates the worktree registry of a repository clone."""

    def __init__(self, repo_path: Union[str, Path], commands: GitCommands, translator: PathTranslator):
        """Initialize the worktree service.

        Args:
            repo_path: Path to the main clone
            commands: Git runner
            translator: Used to test registered paths from the container view
        """
        self.repo_path = str(repo_path)
        self.commands = commands
        self.translator = translator

    def list_entries(self) -> List[WorktreeEntry]:
        """Get every registered worktree, main clone first.

        Raises:
            GitOperationError: if git cannot list worktrees
        """
        output = self.commands.run(self.repo_path, "worktree", "list", "--porcelain", operation="worktree list")

        worktree_list = []
        for raw in parse_porcelain(output):
            path = raw["path"]
            container_path = self.translator.to_container_path(path)
            # Older git does not print "prunable"; a missing directory means the same
            is_prunable = raw.get("prunable", False) or not os.path.exists(container_path)
            worktree_list.append(
                WorktreeEntry(
                    path=path,
                    branch_name=raw.get("branch", ""),
                    commit_sha=raw.get("HEAD", ""),
                    is_main=raw.get("is_main", False),
                    is_prunable=is_prunable and not raw.get("is_main", False),
                    is_locked=raw.get("locked", False),
                )
            )

        logger.debug(f"Found {len(worktree_list)} worktrees in {self.repo_path}")
        for wt in worktree_list:
            logger.debug(f"  {wt}")
        return worktree_list

    def find_by_path(self, path: Union[str, Path], entries: Optional[List[WorktreeEntry]] = None) -> Optional[WorktreeEntry]:
        """Registered worktree at ``path``, comparing normalized container paths."""
        entries = self.list_entries() if entries is None else entries
        for entry in entries:
            if not entry.is_main and self.translator.same_path(entry.path, path):
                return entry
        return None

    def find_by_branch(self, branch_name: str, entries: Optional[List[WorktreeEntry]] = None) -> List[WorktreeEntry]:
        """Linked worktrees (not the main clone) with ``branch_name`` checked out."""
        entries = self.list_entries() if entries is None else entries
        return [
            entry for entry in entries
            if not entry.is_main
            and entry.branch_name == branch_name
            and not self.translator.same_path(entry.path, self.repo_path)
        ]

    def is_registered(self, path: Union[str, Path]) -> bool:
        """Advisory check; False when the registry cannot be read."""
        try:
            return self.find_by_path(path) is not None
        except GitOperationError as e:
            logger.warning(f"Could not list worktrees in {self.repo_path}: {e}")
            return False

    def add_worktree(self, path: Union[str, Path], branch_name: str, base_ref: Optional[str] = None) -> str:
        """Register a new worktree.

        With ``base_ref`` a new branch is created from it, otherwise the
        existing ``branch_name`` is checked out.

        Raises:
            GitOperationError: with git's stderr, unmodified
        """
        if base_ref is not None:
            args = ["worktree", "add", "-b", branch_name, str(path), base_ref]
        else:
            args = ["worktree", "add", str(path), branch_name]

        logger.info(f"Creating worktree: git {' '.join(args)}")
        output = self.commands.run(self.repo_path, *args, operation="worktree add")
        logger.info(f"Created worktree at {path} on branch {branch_name}")
        return output

    def remove_worktree(
        self, path: Union[str, Path], force: bool = False, locked: bool = False
    ) -> tuple[bool, Optional[str]]:
        """Remove a worktree at the specified path.

        Args:
            path: Path to the worktree directory
            force: Force removal even if working tree is dirty
            locked: Also override a lock (git needs ``--force`` twice for that)

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        args = ["worktree", "remove", str(path)]
        if force or locked:
            args.append("--force")
        if locked:
            args.append("--force")

        try:
            self.commands.run(self.repo_path, *args, operation="worktree remove")
            logger.info(f"Removed worktree at {path}")
            return True, None
        except GitOperationError as e:
            if e.stderr:
                error_msg = f"git worktree remove failed (exit {e.status}): {e.stderr}"
            else:
                error_msg = f"git worktree remove failed with exit code {e.status}"

            logger.warning(f"Failed to remove worktree at {path}: {error_msg}")
            return False, error_msg

    def unlock_worktree(self, path: Union[str, Path]) -> tuple[bool, Optional[str]]:
        """Unlock a worktree so ``prune`` may clear its registration.

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        try:
            self.commands.run(self.repo_path, "worktree", "unlock", str(path), operation="worktree unlock")
            logger.info(f"Unlocked worktree at {path}")
            return True, None
        except GitOperationError as e:
            error_msg = f"git worktree unlock failed (exit {e.status}): {e.stderr}"
            logger.warning(f"Failed to unlock worktree at {path}: {error_msg}")
            return False, error_msg

    def prune_worktrees(self) -> tuple[bool, Optional[str]]:
        """Prune orphaned worktree metadata.

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        try:
            self.commands.run(self.repo_path, "worktree", "prune", operation="worktree prune")
            logger.info(f"Pruned orphaned worktree metadata in {self.repo_path}")
            return True, None
        except GitOperationError as e:
            if e.stderr:
                error_msg = f"git worktree prune failed (exit {e.status}): {e.stderr}"
            else:
                error_msg = f"git worktree prune failed with exit code {e.status}"

            logger.warning(f"Failed to prune worktrees: {error_msg}")
            return False, error_msg

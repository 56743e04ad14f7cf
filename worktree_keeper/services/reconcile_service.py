"""Drives git and the filesystem to match a desired worktree.

Creation is a repair state machine: each guard below either leaves the target
path and branch free for ``git worktree add`` or fails without touching
anything it does not own.

    1. target is a primary clone (``.git`` directory)  -> PathConflictError
    2. target exists, not registered                   -> remove the directory
    3. target registered to the same branch            -> force-remove, recreate
    4. target registered to another branch             -> BranchMismatchError
    5. branch registered elsewhere, or stale at target -> evict that registration
    6. branch checked out in the main clone            -> switch the main clone away
    7. branch missing                                  -> resolve a base ref
    8. git worktree add                                -> errors are terminal
    9. localize pointer files, confirm registration    -> advisory
"""

import os
import shutil
from pathlib import Path
from typing import List, Optional, Union

from worktree_keeper.config import Config
from worktree_keeper.constants import INTEGRATION_BRANCHES
from worktree_keeper.exceptions import (
    BranchMismatchError,
    DirectoryRemovalError,
    GitOperationError,
    NoBaseBranchError,
    PathConflictError,
    WorktreeKeeperError,
    WorktreeNotFoundError,
)
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.repository import RepositoryDescriptor
from worktree_keeper.models.worktree import WorktreeEntry, WorktreeIdentity, WorktreeRecord
from worktree_keeper.services.bootstrap_service import RepositoryBootstrapper
from worktree_keeper.services.candidates import Candidate, first_success
from worktree_keeper.services.git.commands import GitCommands
from worktree_keeper.services.git.worktrees import WorktreeService
from worktree_keeper.services.locking import RepositoryLocks
from worktree_keeper.services.path_translator import PathTranslator

logger = get_logger(__name__)


def remove_directory(path: Union[str, Path]) -> None:
    """Recursively delete ``path``.

    Files and symlinks (including a symlink to a directory) are unlinked,
    never followed.

    Raises:
        DirectoryRemovalError: if anything is left behind
    """
    path = Path(path)
    try:
        if path.is_symlink() or not path.is_dir():
            path.unlink()
        else:
            shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as e:
        raise DirectoryRemovalError(str(path), str(e)) from e
    logger.info(f"Removed directory {path}")


class WorktreeReconciler:
    """Creates and deletes worktrees, one repository at a time."""

    def __init__(
        self,
        config: Config,
        commands: GitCommands,
        translator: PathTranslator,
        bootstrapper: RepositoryBootstrapper,
        locks: RepositoryLocks,
    ):
        self.config = config
        self.commands = commands
        self.translator = translator
        self.bootstrapper = bootstrapper
        self.locks = locks

    def worktree_service(self, descriptor: RepositoryDescriptor) -> WorktreeService:
        return WorktreeService(descriptor.local_path, self.commands, self.translator)

    def create(
        self, identity: WorktreeIdentity, base_branch: Optional[str] = None, host_pointer: bool = False
    ) -> WorktreeRecord:
        """Create (or repair) the worktree for ``identity``.

        Holds the repository's lock from the clone check until the new
        worktree is confirmed.

        Args:
            identity: Desired worktree
            base_branch: Preferred base for a new branch; falls back to dev/main/master
            host_pointer: Leave the host form in the new worktree's ``.git`` file
                for tools running on the host

        Raises:
            WorktreeKeeperError: one of the typed errors; nothing partial is returned
        """
        descriptor = identity.repository
        with self.locks.hold(descriptor.canonical_name):
            self.bootstrapper.ensure_cloned(descriptor)
            record = self._create_locked(identity, base_branch)
            if host_pointer and not self.translator.publish_host_pointer(record.path):
                logger.warning(f"Could not publish host pointer for {record.path}")
            return record

    def _create_locked(self, identity: WorktreeIdentity, base_branch: Optional[str]) -> WorktreeRecord:
        descriptor = identity.repository
        repo_path = descriptor.local_path
        branch_name = identity.branch_name
        target = identity.worktree_path(self.config.worktree_root)
        worktrees = self.worktree_service(descriptor)

        logger.info(f"Reconciling worktree {branch_name} at {target}")

        self._check_primary_clone(target)
        if target.exists() or target.is_symlink():
            self._clear_target(worktrees, target, branch_name)
        self._evict_branch(worktrees, target, branch_name)
        self._release_from_main_clone(repo_path, branch_name)

        if self.commands.has_local_branch(repo_path, branch_name):
            base_ref = None
            logger.info(f"Branch {branch_name} exists, checking it out")
        else:
            base_ref = self.resolve_base_ref(descriptor, base_branch)
            logger.info(f"Creating branch {branch_name} from {base_ref}")

        self._ensure_parent(target)
        worktrees.add_worktree(target, branch_name, base_ref)

        return self._confirm(worktrees, identity, target)

    # State 1

    def _check_primary_clone(self, target: Path) -> None:
        # Main repositories have .git as a directory, worktrees have .git as a file
        if (target / ".git").is_dir():
            logger.error(f"{target} is a primary clone, refusing to touch it")
            raise PathConflictError(str(target))

    # States 2-4

    def _clear_target(self, worktrees: WorktreeService, target: Path, branch_name: str) -> None:
        logger.info(f"Directory already exists at {target}, checking if it's registered with git")
        try:
            entry = worktrees.find_by_path(target)
        except GitOperationError as e:
            logger.warning(f"Failed to check worktree list: {e}")
            entry = None

        if entry is None:
            logger.info(f"Directory exists at {target} but is not a registered worktree, removing")
            remove_directory(target)
            return

        if entry.branch_name != branch_name:
            raise BranchMismatchError(str(target), entry.branch_name or "(detached)", branch_name)

        logger.info(f"Replacing existing worktree at {target} (same branch {branch_name})")
        self._restore_pointer(target)
        worktrees.remove_worktree(target, force=True, locked=entry.is_locked)
        if target.exists():
            remove_directory(target)

    def _restore_pointer(self, worktree_path: Union[str, Path]) -> None:
        # git run from the container cannot follow a host-form .git file
        if (Path(worktree_path) / ".git").is_file():
            self.translator.restore_container_pointer(worktree_path)

    # State 5

    def _evict_branch(self, worktrees: WorktreeService, target: Path, branch_name: str) -> None:
        worktrees.prune_worktrees()
        try:
            entries = worktrees.list_entries()
        except GitOperationError as e:
            logger.warning(f"Failed to list worktrees: {e}")
            return

        conflicts = worktrees.find_by_branch(branch_name, entries)
        # A stale registration at the target blocks ``worktree add`` whatever its branch;
        # git never reports a locked one as prunable
        at_target = worktrees.find_by_path(target, entries)
        target_gone = not target.exists()
        if at_target is not None and target_gone and at_target not in conflicts:
            conflicts.append(at_target)

        for entry in conflicts:
            stale = entry.is_prunable or target_gone
            if not stale and self.translator.same_path(entry.path, target):
                logger.warning(f"Worktree for {branch_name} is still present at {target}")
                continue
            self._evict(worktrees, entry)

    def _evict(self, worktrees: WorktreeService, entry: WorktreeEntry) -> None:
        reason = "prunable" if entry.is_prunable else "different path"
        if entry.is_locked:
            reason += ", locked"
        logger.info(f"Removing conflicting worktree at {entry.path} (branch {entry.branch_name}, {reason})")

        container_path = self.translator.to_container_path(entry.path)
        self._restore_pointer(container_path)
        removed, error = worktrees.remove_worktree(container_path, force=True, locked=entry.is_locked)
        if not removed and container_path != entry.path:
            removed, error = worktrees.remove_worktree(entry.path, force=True, locked=entry.is_locked)
        if removed and not self._still_registered(worktrees, entry.path):
            return

        # prune skips locked entries, so the directory must survive a failed unlock
        if entry.is_locked:
            unlocked, unlock_error = worktrees.unlock_worktree(entry.path)
            if not unlocked:
                raise GitOperationError("worktree unlock", stderr=unlock_error or error)

        logger.warning(f"Worktree at {entry.path} still registered, removing directory and pruning")
        if os.path.exists(container_path) or os.path.islink(container_path):
            remove_directory(container_path)
        worktrees.prune_worktrees()

        if self._still_registered(worktrees, entry.path):
            raise GitOperationError(
                "worktree remove",
                stderr=error or f"{entry.path} is still registered for {entry.branch_name}",
            )

    def _still_registered(self, worktrees: WorktreeService, path: str) -> bool:
        try:
            return worktrees.find_by_path(path) is not None
        except GitOperationError as e:
            logger.warning(f"Failed to verify worktree removal: {e}")
            return False

    # State 6

    def _release_from_main_clone(self, repo_path: Path, branch_name: str) -> None:
        try:
            current = self.commands.current_branch(repo_path)
        except GitOperationError as e:
            logger.warning(f"Could not read HEAD of {repo_path}: {e}")
            return
        if current != branch_name:
            return

        logger.info(f"{branch_name} is checked out in {repo_path}, switching the main clone away")
        label = first_success(
            [
                Candidate(
                    name,
                    lambda name=name: self.commands.has_local_branch(repo_path, name),
                    lambda name=name: self.commands.checkout(repo_path, name),
                )
                for name in INTEGRATION_BRANCHES
            ],
            f"switch {repo_path} away from {branch_name}",
        )
        if label is None:
            logger.warning(f"Could not switch {repo_path} away from {branch_name}")

    # Step 7

    def resolve_base_ref(self, descriptor: RepositoryDescriptor, hint: Optional[str] = None) -> str:
        """Pick the ref a new branch starts from.

        The hint wins if it exists locally or on the remote (a local tracking
        branch is created for a remote-only hint); otherwise the first of
        dev/main/master that exists locally, then on the remote.

        Raises:
            NoBaseBranchError: nothing usable exists
        """
        repo_path = descriptor.local_path
        commands = self.commands
        remote = commands.remote_name
        candidates: List[Candidate] = []

        if hint:
            candidates += [
                Candidate(hint, lambda: commands.has_local_branch(repo_path, hint)),
                Candidate(
                    hint,
                    lambda: commands.has_remote_branch(repo_path, hint),
                    lambda: commands.create_tracking_branch(repo_path, hint),
                ),
                Candidate(f"{remote}/{hint}", lambda: commands.has_remote_branch(repo_path, hint)),
            ]
        candidates += [
            Candidate(name, lambda name=name: commands.has_local_branch(repo_path, name))
            for name in INTEGRATION_BRANCHES
        ]
        candidates += [
            Candidate(f"{remote}/{name}", lambda name=name: commands.has_remote_branch(repo_path, name))
            for name in INTEGRATION_BRANCHES
        ]

        base_ref = first_success(candidates, f"base branch for {descriptor}")
        if base_ref is None:
            tried = ([hint] if hint else []) + list(INTEGRATION_BRANCHES)
            raise NoBaseBranchError(descriptor.canonical_name, tried)
        if hint and base_ref not in (hint, f"{remote}/{hint}"):
            logger.warning(f"Base branch {hint} not found in {descriptor}, using {base_ref}")
        return base_ref

    # Steps 8-9

    def _ensure_parent(self, target: Path) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorktreeKeeperError(f"Failed to create parent directory {target.parent}: {e}") from e

    def _confirm(self, worktrees: WorktreeService, identity: WorktreeIdentity, target: Path) -> WorktreeRecord:
        if not self.translator.localize_worktree(target, worktrees.repo_path):
            logger.warning(f"Pointer files of {target} may not resolve for external tools")

        actual_branch = identity.branch_name
        try:
            actual_branch = self.commands.current_branch(target)
            logger.info(f"Verified worktree git repository: on branch {actual_branch}")
        except GitOperationError as e:
            logger.warning(f"Could not verify git repository in worktree: {e}")

        registered = worktrees.is_registered(target)
        if registered:
            logger.info("Worktree successfully registered in git")
        else:
            logger.warning(f"Worktree at {target} not found in git worktree list")

        logger.info(
            f"Branch {identity.branch_name} created locally. "
            f"Push to remote when ready using: git push -u origin {identity.branch_name}"
        )
        return WorktreeRecord(
            identity=identity,
            path=str(target),
            actual_branch=actual_branch,
            registered_in_git=registered,
            directory_exists=target.is_dir(),
        )

    # Deletion

    def delete(self, identity: WorktreeIdentity, explicit_path: Optional[Union[str, Path]] = None) -> str:
        """Remove a worktree's registration and directory. The branch is kept.

        Git-level removal is advisory; the directory being gone afterwards is
        what counts.

        Returns:
            The removed path

        Raises:
            WorktreeNotFoundError: the directory or the owning clone does not exist
            PathConflictError: the path is a primary clone
            DirectoryRemovalError: the directory could not be removed
        """
        descriptor = identity.repository
        if explicit_path:
            target = Path(self.translator.to_container_path(explicit_path))
        else:
            target = identity.worktree_path(self.config.worktree_root)

        with self.locks.hold(descriptor.canonical_name):
            if not target.exists():
                raise WorktreeNotFoundError(str(target))
            if not descriptor.is_cloned():
                raise WorktreeNotFoundError(
                    str(descriptor.local_path), f"Repository not found at {descriptor.local_path}"
                )
            self._check_primary_clone(target)

            worktrees = self.worktree_service(descriptor)
            self._restore_pointer(target)
            removed, error = worktrees.remove_worktree(target, force=True)
            if not removed:
                logger.warning(f"Failed to remove worktree via git, removing directory instead: {error}")

            if target.exists():
                remove_directory(target)
            if not removed:
                worktrees.prune_worktrees()

        logger.info(f"Deleted worktree {identity.branch_name} at {target}")
        return str(target)

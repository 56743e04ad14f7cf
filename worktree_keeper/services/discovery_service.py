"""Lists worktrees that follow the naming convention.

Two sources are merged by normalized path, first seen wins: git's own
registry of each clone, then a scan of ``<worktree_root>/<repo>/*`` that
catches directories whose registration is missing or broken.
"""

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set

from worktree_keeper.config import Config
from worktree_keeper.exceptions import GitOperationError
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.repository import RepositoryDescriptor
from worktree_keeper.models.worktree import WorktreeIdentity, WorktreeRecord
from worktree_keeper.services.git.commands import GitCommands
from worktree_keeper.services.git.worktrees import WorktreeService
from worktree_keeper.services.locking import RepositoryLocks
from worktree_keeper.services.path_translator import PathTranslator
from worktree_keeper.services.repository_resolver import RepositoryResolver

logger = get_logger(__name__)


def is_linked_worktree(path: Path) -> bool:
    """A linked worktree has a ``.git`` file; a primary clone has a ``.git`` directory."""
    return (path / ".git").is_file()


class WorktreeDiscovery:
    """Read-only view over every configured repository's worktrees."""

    def __init__(
        self,
        config: Config,
        resolver: RepositoryResolver,
        commands: GitCommands,
        translator: PathTranslator,
        locks: RepositoryLocks,
    ):
        self.config = config
        self.resolver = resolver
        self.commands = commands
        self.translator = translator
        self.locks = locks

    def list(self) -> List[WorktreeRecord]:
        """Every convention-following worktree, each reported once."""
        records: Dict[str, WorktreeRecord] = {}
        for descriptor in self.resolver.all():
            with self.locks.hold(descriptor.canonical_name, file_lock=False):
                for record in self.scan_repository(descriptor):
                    key = self.translator.normalize(record.path)
                    if key in records:
                        continue
                    records[key] = record

        logger.info(f"Discovered {len(records)} worktrees")
        return list(records.values())

    def scan_repository(self, descriptor: RepositoryDescriptor) -> Iterator[WorktreeRecord]:
        """Registry records first, then filesystem records, for one repository."""
        registered: Set[str] = set()
        yield from self._scan_registry(descriptor, registered)
        yield from self._scan_filesystem(descriptor, registered)

    def _scan_registry(self, descriptor: RepositoryDescriptor, registered: Set[str]) -> Iterator[WorktreeRecord]:
        """Yield records from git's registry; fills ``registered`` with every live linked path."""
        if not descriptor.is_cloned():
            return

        worktrees = WorktreeService(descriptor.local_path, self.commands, self.translator)
        try:
            entries = worktrees.list_entries()
        except GitOperationError as e:
            logger.warning(f"Failed to list worktrees for {descriptor.canonical_name}: {e}")
            return

        for entry in entries:
            if entry.is_main or self.translator.same_path(entry.path, descriptor.local_path):
                continue
            # Skip prunable worktrees (directories don't exist)
            if entry.is_prunable:
                continue
            registered.add(self.translator.normalize(entry.path))

            identity = WorktreeIdentity.from_branch_name(descriptor, entry.branch_name)
            if identity is None:
                logger.debug(f"Ignoring worktree {entry} outside the naming convention")
                continue

            container_path = Path(self.translator.to_container_path(entry.path))
            if not is_linked_worktree(container_path):
                continue

            yield WorktreeRecord(
                identity=identity,
                path=str(container_path),
                actual_branch=self.read_head(container_path, fallback=entry.branch_name),
                registered_in_git=True,
                directory_exists=True,
            )

    def _scan_filesystem(self, descriptor: RepositoryDescriptor, registered: Set[str]) -> Iterator[WorktreeRecord]:
        repo_dir = Path(self.config.worktree_root) / descriptor.canonical_name
        try:
            children = sorted(repo_dir.iterdir())
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Failed to read repo directory {repo_dir}: {e}")
            return

        for path in children:
            if not path.is_dir():
                continue
            identity = WorktreeIdentity.from_branch_name(descriptor, path.name)
            if identity is None:
                continue
            if not is_linked_worktree(path):
                continue

            with self.translator.container_pointer(path):
                actual_branch = self.read_head(path, fallback=path.name)

            yield WorktreeRecord(
                identity=identity,
                path=str(path),
                actual_branch=actual_branch,
                registered_in_git=self.translator.normalize(path) in registered,
                directory_exists=True,
            )

    def read_head(self, path: Path, fallback: Optional[str] = None) -> str:
        """Branch checked out at ``path``; ``fallback`` if git cannot tell (e.g. mid-mutation)."""
        try:
            return self.commands.current_branch(path)
        except GitOperationError as e:
            logger.warning(f"Failed to get branch name for {path}: {e}")
            return fallback or ""

"""Core functionality for worktree-keeper"""

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from worktree_keeper.config import Config
from worktree_keeper.exceptions import WorktreeKeeperError
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.repository import RepositoryDescriptor
from worktree_keeper.models.worktree import BatchResult, ChangeType, WorktreeIdentity, WorktreeRecord
from worktree_keeper.services.backlog_service import BacklogTracker, GitHubBacklog, sort_branches
from worktree_keeper.services.bootstrap_service import RepositoryBootstrapper
from worktree_keeper.services.discovery_service import WorktreeDiscovery
from worktree_keeper.services.git.commands import GitCommands
from worktree_keeper.services.locking import RepositoryLocks
from worktree_keeper.services.path_translator import PathTranslator
from worktree_keeper.services.reconcile_service import WorktreeReconciler
from worktree_keeper.services.repository_resolver import RepositoryResolver

logger = get_logger(__name__)


class WorktreeKeeper:
    """Main entry point: create, list and delete worktrees across configured repositories."""

    def __init__(self, config: Union[Config, dict], backlog: Optional[BacklogTracker] = None):
        """Initialize WorktreeKeeper.

        Args:
            config: Configuration dict or Config object
            backlog: Receives create/delete events; defaults to GitHub issues
                when ``backlog_enabled`` is set and a token is available
        """
        if isinstance(config, dict):
            self.config = Config.from_dict(config)
        else:
            self.config = config

        self.resolver = RepositoryResolver(self.config.descriptors())
        self.commands = GitCommands(self.config.git_timeout)
        self.translator = PathTranslator(self.config.repo_root, self.config.host_root)
        self.locks = RepositoryLocks.for_root(self.config.repo_root, self.config.file_locks)
        self.bootstrapper = RepositoryBootstrapper(self.config, self.commands)
        self.reconciler = WorktreeReconciler(
            self.config, self.commands, self.translator, self.bootstrapper, self.locks
        )
        self.discovery = WorktreeDiscovery(
            self.config, self.resolver, self.commands, self.translator, self.locks
        )

        if backlog is None and self.config.backlog_enabled:
            if self.config.github_token and self.config.github_org:
                backlog = GitHubBacklog(self.config.github_token, self.config.github_org)
            else:
                logger.warning("Backlog tracking enabled but GITHUB_TOKEN or GITHUB_ORG is missing")
        self.backlog = backlog
        self._github: Optional[GitHubBacklog] = backlog if isinstance(backlog, GitHubBacklog) else None
        self._backlog_executor: Optional[ThreadPoolExecutor] = None

    def identity(self, identifier: str, change_type: Union[str, ChangeType], name: str) -> WorktreeIdentity:
        """Resolve ``identifier`` and build the desired worktree identity."""
        descriptor = self.resolver.resolve(identifier)
        return WorktreeIdentity(repository=descriptor, change_type=change_type, name=name)

    def create(
        self,
        identifier: str,
        change_type: Union[str, ChangeType],
        name: str,
        base_branch: Optional[str] = None,
        host_pointer: bool = False,
    ) -> WorktreeRecord:
        """Create or repair one worktree.

        With ``host_pointer`` the worktree's ``.git`` file is left in the host
        form, for tools running on the host.

        Raises:
            WorktreeKeeperError: on any failure; the backlog is only notified on success
        """
        identity = self.identity(identifier, change_type, name)
        record = self.reconciler.create(identity, base_branch, host_pointer)
        self._notify_backlog("record", record)
        return record

    def create_many(
        self,
        identifiers: Sequence[str],
        change_type: Union[str, ChangeType],
        name: str,
        base_branches: Optional[Dict[str, str]] = None,
        host_pointer: bool = False,
    ) -> BatchResult:
        """Create the same worktree in several repositories, concurrently.

        Every identifier is validated before anything is touched. After that,
        a failure in one repository does not affect the others.

        Args:
            identifiers: Repository keys or canonical names
            base_branches: Optional base branch per identifier (key or name)
            host_pointer: Leave host-form ``.git`` files in the new worktrees

        Raises:
            RepositoryNotFoundError: an identifier is unknown
            InvalidWorktreeNameError: the type or name is invalid
        """
        base_branches = base_branches or {}
        identities: Dict[str, WorktreeIdentity] = {}
        for identifier in identifiers:
            identity = self.identity(identifier, change_type, name)
            # The same repository named twice (by key and by name) is created once
            if any(other.repository == identity.repository for other in identities.values()):
                logger.debug(f"Skipping duplicate repository {identifier}")
                continue
            identities[identifier] = identity

        result = BatchResult()
        if not identities:
            return result

        max_workers = self.config.max_workers or len(identities)
        logger.debug(f"Using {max_workers} workers for {len(identities)} repositories")

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_identifier = {
                executor.submit(
                    self.reconciler.create,
                    identity,
                    self._base_branch_for(identity.repository, identifier, base_branches),
                    host_pointer,
                ): identifier
                for identifier, identity in identities.items()
            }

            for future in as_completed(future_to_identifier):
                identifier = future_to_identifier[future]
                try:
                    record = future.result()
                except WorktreeKeeperError as e:
                    logger.error(f"Error creating worktree in {identifier}: {e}")
                    result.errors[identifier] = e
                    continue
                except Exception as e:
                    logger.exception(f"Unexpected error creating worktree in {identifier}")
                    result.errors[identifier] = WorktreeKeeperError(str(e))
                    continue
                result.worktrees.append(record)
                self._notify_backlog("record", record)

        # Keep the caller's order regardless of completion order
        order = {identity.repository.canonical_name: index for index, identity in enumerate(identities.values())}
        result.worktrees.sort(key=lambda record: order[record.identity.repository.canonical_name])
        return result

    @staticmethod
    def _base_branch_for(
        descriptor: RepositoryDescriptor, identifier: str, base_branches: Dict[str, str]
    ) -> Optional[str]:
        for candidate in (identifier, descriptor.canonical_name, descriptor.key):
            if base_branches.get(candidate):
                return base_branches[candidate]
        return None

    def list(self) -> List[WorktreeRecord]:
        """Every worktree following the naming convention, across all repositories."""
        return self.discovery.list()

    def delete(
        self,
        identifier: str,
        change_type: Union[str, ChangeType],
        name: str,
        path: Optional[Union[str, Path]] = None,
    ) -> str:
        """Delete one worktree; the branch itself is kept.

        Returns:
            The removed path
        """
        identity = self.identity(identifier, change_type, name)
        removed = self.reconciler.delete(identity, path)
        self._notify_backlog("remove", identity)
        return removed

    def list_branches(self, identifier: str) -> List[str]:
        """Branch names of the upstream repository.

        Asks GitHub when a token is configured, otherwise reads the remote
        refs of the local clone.
        """
        descriptor = self.resolver.resolve(identifier)
        github = self._github
        if github is None and self.config.github_token and self.config.github_org:
            github = self._github = GitHubBacklog(self.config.github_token, self.config.github_org)
        if github is not None:
            return github.list_branches(descriptor.canonical_name)

        if not descriptor.is_cloned():
            logger.warning(f"{descriptor} is not cloned and no GitHub token is configured")
            return []
        return sort_branches(list(self.commands.remote_branches(descriptor.local_path)))

    def _notify_backlog(self, action: str, subject) -> None:
        """Hand ``subject`` to the backlog tracker without waiting for it."""
        if self.backlog is None:
            return
        if self._backlog_executor is None:
            self._backlog_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="backlog")

        future = self._backlog_executor.submit(getattr(self.backlog, action), subject)
        future.add_done_callback(lambda done: self._log_backlog_failure(action, subject, done))

    @staticmethod
    def _log_backlog_failure(action: str, subject, future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.warning(f"Backlog {action} failed for {subject}: {error}")

    def close(self, wait: bool = True) -> None:
        """Wait for pending backlog calls and release resources."""
        logger.debug("Closing WorktreeKeeper resources")
        if self._backlog_executor is not None:
            self._backlog_executor.shutdown(wait=wait)
            self._backlog_executor = None
        if self._github is not None:
            try:
                self._github.github.close()
            except Exception as e:
                logger.debug(f"Error during cleanup: {e}")

    def __enter__(self) -> "WorktreeKeeper":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

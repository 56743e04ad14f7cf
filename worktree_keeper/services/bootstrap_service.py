"""Makes sure a repository is cloned and has an integration branch checked out."""

from pathlib import Path
from typing import List

from worktree_keeper.config import Config
from worktree_keeper.constants import INTEGRATION_BRANCHES
from worktree_keeper.exceptions import (
    CloneError,
    GitOperationError,
    GitTimeoutError,
    MissingCredentialError,
)
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.repository import RepositoryDescriptor
from worktree_keeper.services.candidates import Candidate, first_success
from worktree_keeper.services.git.commands import GitCommands

logger = get_logger(__name__)


def authenticated_url(url: str, token: str) -> str:
    """Inject the token into an https clone URL; other URLs are returned unchanged."""
    if url.startswith("https://"):
        return url.replace("https://", f"https://{token}@", 1)
    return url


class RepositoryBootstrapper:
    """Clones repositories on first use and selects their integration branch.

    Only the clone is required; fetching and branch selection are advisory.
    """

    def __init__(self, config: Config, commands: GitCommands):
        self.config = config
        self.commands = commands

    def ensure_cloned(self, descriptor: RepositoryDescriptor) -> bool:
        """Clone ``descriptor`` if needed, then fetch and check out an integration branch.

        Returns:
            True if the repository was cloned by this call

        Raises:
            MissingCredentialError: no token is configured and a clone is needed
            CloneError: git clone failed
        """
        cloned = False
        if descriptor.is_cloned():
            logger.debug(f"{descriptor} already cloned at {descriptor.local_path}")
        else:
            self.clone(descriptor)
            cloned = True

        self.prepare(descriptor)
        return cloned

    def clone(self, descriptor: RepositoryDescriptor) -> None:
        token = self.config.github_token
        if not token:
            raise MissingCredentialError(descriptor.canonical_name)

        url = authenticated_url(descriptor.clone_url, token)
        self.config.repo_root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cloning {descriptor.clone_url} into {descriptor.local_path}")
        try:
            self.commands.run(
                self.config.repo_root, "clone", url, str(descriptor.local_path),
                operation=f"clone {descriptor.canonical_name}",
                timeout=self.config.clone_timeout,
            )
        except GitOperationError as e:
            stderr = e.stderr.replace(token, "***")
            command = [part.replace(token, "***") for part in e.command]
            raise CloneError(e.operation, stderr=stderr, status=e.status, command=command) from e

    def prepare(self, descriptor: RepositoryDescriptor) -> None:
        """Fetch and check out ``dev``, ``main`` or ``master``. Failures are logged only."""
        repo_path = descriptor.local_path
        try:
            self.commands.fetch(repo_path)
        except GitOperationError as e:
            logger.warning(f"Failed to fetch {descriptor}: {e}")

        try:
            label = first_success(self.integration_candidates(repo_path), f"integration branch for {descriptor}")
        except GitTimeoutError as e:
            logger.warning(f"Timed out selecting an integration branch for {descriptor}: {e}")
            return

        if label is None:
            logger.warning(f"No integration branch ({', '.join(INTEGRATION_BRANCHES)}) found in {descriptor}")
        else:
            logger.info(f"{descriptor} is on {label}")

    def integration_candidates(self, repo_path: Path) -> List[Candidate]:
        """dev, else origin/dev, else a new dev from main or master (local or remote)."""
        primary = INTEGRATION_BRANCHES[0]
        commands = self.commands

        def checkout_and_pull() -> None:
            commands.checkout(repo_path, primary)
            try:
                commands.pull(repo_path, primary)
            except GitOperationError as e:
                logger.debug(f"Could not pull {primary}: {e}")

        candidates = [
            Candidate(primary, lambda: commands.has_local_branch(repo_path, primary), checkout_and_pull),
            Candidate(
                f"{commands.remote_name}/{primary}",
                lambda: commands.has_remote_branch(repo_path, primary),
                lambda: commands.checkout_tracking(repo_path, primary),
            ),
        ]
        for fallback in INTEGRATION_BRANCHES[1:]:
            candidates.append(
                Candidate(
                    f"{primary} from {fallback}",
                    self._branch_available(repo_path, fallback),
                    self._branch_from(repo_path, primary, fallback),
                )
            )
        return candidates

    def _branch_available(self, repo_path: Path, branch_name: str):
        return lambda: (
            self.commands.has_local_branch(repo_path, branch_name)
            or self.commands.has_remote_branch(repo_path, branch_name)
        )

    def _branch_from(self, repo_path: Path, branch_name: str, start_branch: str):
        def action() -> None:
            if not self.commands.has_local_branch(repo_path, start_branch):
                self.commands.create_tracking_branch(repo_path, start_branch)
            self.commands.checkout_tracking(repo_path, branch_name, start_branch)
        return action

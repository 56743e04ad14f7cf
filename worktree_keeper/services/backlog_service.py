"""GitHub integration: backlog items for worktrees and remote branch listings."""

from typing import TYPE_CHECKING, Dict, List, Optional

from github import Auth, Github
from github.GithubException import GithubException

from worktree_keeper.constants import LEADING_BRANCHES, SECONDARY_BRANCHES
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.worktree import WorktreeIdentity, WorktreeRecord

if TYPE_CHECKING:
    from github.Repository import Repository

logger = get_logger(__name__)


class BacklogTracker:
    """Receives worktree lifecycle events. Implementations may raise; callers absorb."""

    def record(self, record: WorktreeRecord) -> None:
        raise NotImplementedError

    def remove(self, identity: WorktreeIdentity) -> None:
        raise NotImplementedError


def backlog_title(identity: WorktreeIdentity) -> str:
    return f"{identity.repository.canonical_name}: {identity.change_type.value}-{identity.name}"


def backlog_body(record: WorktreeRecord) -> str:
    identity = record.identity
    return (
        f"Repository: {identity.repository.canonical_name}\n"
        f"Branch: {identity.branch_name}\n"
        f"Type: {identity.change_type.value}\n"
        f"Name: {identity.name}\n"
        f"Path: {record.path}"
    )


def sort_branches(branches: List[str]) -> List[str]:
    """main/master first, then dev/develop, then alphabetical."""
    def rank(name: str):
        if name in LEADING_BRANCHES:
            return (0, LEADING_BRANCHES.index(name), name)
        if name in SECONDARY_BRANCHES:
            return (1, SECONDARY_BRANCHES.index(name), name)
        return (2, 0, name)

    return sorted(branches, key=rank)


class GitHubBacklog(BacklogTracker):
    """Tracks each worktree as an issue in its upstream repository.

    The issue is opened when the worktree is created and closed when it is
    deleted; matching is by title and the ``Branch:`` line of the body.
    """

    def __init__(self, token: str, org: str, github: Optional[Github] = None):
        self.org = org
        self.github = github or Github(auth=Auth.Token(token))
        self._repos: Dict[str, "Repository"] = {}

    def _repo(self, name: str) -> "Repository":
        if name not in self._repos:
            self._repos[name] = self.github.get_repo(f"{self.org}/{name}")
        return self._repos[name]

    def validate_token(self) -> str:
        """Return the login the token authenticates as.

        Raises:
            GithubException: the token is rejected
        """
        login = self.github.get_user().login
        logger.debug(f"[GitHub] Authenticated as {login}")
        return login

    def record(self, record: WorktreeRecord) -> None:
        identity = record.identity
        title = backlog_title(identity)
        if self._find_issue(identity) is not None:
            logger.debug(f"[GitHub] Backlog item already open: {title}")
            return
        issue = self._repo(identity.repository.canonical_name).create_issue(title=title, body=backlog_body(record))
        logger.info(f"[GitHub] Created backlog item #{issue.number} for {identity.branch_name}")

    def remove(self, identity: WorktreeIdentity) -> None:
        issue = self._find_issue(identity)
        if issue is None:
            logger.debug(f"[GitHub] No backlog item for {identity.branch_name}")
            return
        issue.edit(state="closed")
        logger.info(f"[GitHub] Closed backlog item #{issue.number} for {identity.branch_name}")

    def _find_issue(self, identity: WorktreeIdentity):
        title = backlog_title(identity)
        branch_line = f"Branch: {identity.branch_name}"
        for issue in self._repo(identity.repository.canonical_name).get_issues(state="open"):
            if issue.pull_request is not None:
                continue
            if issue.title == title and branch_line in (issue.body or ""):
                return issue
        return None

    def list_branches(self, name: str) -> List[str]:
        """Branch names of ``<org>/<name>`` on GitHub.

        Raises:
            GithubException: the repository cannot be read
        """
        try:
            branches = [branch.name for branch in self._repo(name).get_branches()]
        except GithubException as e:
            logger.error(f"[GitHub] Failed to fetch branches for {name}: {e}")
            raise
        return sort_branches(branches)

"""Custom exceptions for worktree-keeper"""

from typing import Optional, Sequence


class WorktreeKeeperError(Exception):
    """Base exception for all worktree-keeper errors."""
    pass


class RepositoryNotFoundError(WorktreeKeeperError):
    """Raised when an identifier matches neither a repository key nor a canonical name."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Invalid repository: {identifier}")


class WorktreeNotFoundError(WorktreeKeeperError):
    """Raised when a worktree (or the clone owning it) is not on disk."""

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = path
        super().__init__(message or f"Working tree not found at {path}")


class InvalidWorktreeNameError(WorktreeKeeperError, ValueError):
    """Raised for a worktree name or change type outside the naming convention."""
    pass


class MissingCredentialError(WorktreeKeeperError):
    """Raised when a clone is required but no GitHub token is configured."""

    def __init__(self, repository: str):
        self.repository = repository
        super().__init__(
            f"GITHUB_TOKEN not found while cloning {repository}. "
            "Set the GITHUB_TOKEN environment variable or create a token file."
        )


class GitOperationError(WorktreeKeeperError):
    """Exception raised when a required git invocation fails.

    ``stderr`` holds the tool's own output, unmodified.
    """

    def __init__(
        self,
        operation: str,
        stderr: Optional[str] = None,
        status: Optional[int] = None,
        command: Optional[Sequence[str]] = None,
    ):
        self.operation = operation
        self.stderr = stderr or ""
        self.status = status
        self.command = list(command) if command else []

        error_msg = f"Git operation '{operation}' failed"
        if status is not None:
            error_msg += f" (exit {status})"
        if self.stderr:
            error_msg += f": {self.stderr}"

        super().__init__(error_msg)


class GitTimeoutError(GitOperationError):
    """Raised when a git invocation is killed after exceeding its timeout."""
    pass


class CloneError(GitOperationError):
    """Raised when the initial clone of a repository fails."""
    pass


class PathConflictError(WorktreeKeeperError):
    """Raised when a worktree path is occupied by a primary clone."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Path {path} conflicts with an existing repository directory. "
            "Please use a different branch name."
        )


class BranchMismatchError(WorktreeKeeperError):
    """Raised when the target path is registered to a different branch."""

    def __init__(self, path: str, existing_branch: str, branch: str):
        self.path = path
        self.existing_branch = existing_branch
        self.branch = branch
        super().__init__(
            f"A worktree already exists at {path} with a different branch "
            f"({existing_branch}, wanted {branch}). Please use a different name."
        )


class NoBaseBranchError(WorktreeKeeperError):
    """Raised when no base ref exists to branch a new worktree from."""

    def __init__(self, repository: str, candidates: Sequence[str]):
        self.repository = repository
        self.candidates = list(candidates)
        super().__init__(
            f"No base branch found in {repository}; tried {', '.join(self.candidates)}"
        )


class DirectoryRemovalError(WorktreeKeeperError):
    """Raised when a worktree directory cannot be removed from disk."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Failed to remove directory {path}: {message}")

"""Thin layer over GitPython used by every service that runs git."""

from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import git

from worktree_keeper.constants import GIT_ENV, REMOTE_NAME
from worktree_keeper.exceptions import GitOperationError, GitTimeoutError
from worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def stderr_of(error: git.exc.GitCommandError) -> str:
    """Return the stderr GitPython captured, without its ``stderr: '...'`` wrapper."""
    stderr = (error.stderr if hasattr(error, "stderr") else str(error)) or ""
    stderr = stderr.strip()
    if stderr.startswith("stderr: '") and stderr.endswith("'"):
        stderr = stderr[len("stderr: '"):-1]
    return stderr.strip()


def is_timeout(error: git.exc.GitCommandError) -> bool:
    # GitPython replaces stderr with this message when kill_after_timeout fires
    stderr = stderr_of(error)
    return stderr.startswith("Timeout:") and "did not complete in" in stderr


class GitCommands:
    """Runs git subprocesses with a bounded timeout.

    Every call is one sequential subprocess; nothing here is cached, so a
    single instance can be shared between threads.
    """

    def __init__(self, timeout: float, remote_name: str = REMOTE_NAME):
        self.timeout = timeout
        self.remote_name = remote_name

    def run(
        self,
        cwd: PathLike,
        *args: str,
        operation: Optional[str] = None,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        """Run ``git <args>`` in ``cwd`` and return its stdout.

        Raises:
            GitTimeoutError: the process outlived its timeout and was killed
            GitOperationError: git exited non-zero; stderr is attached verbatim
        """
        command = ["git", *args]
        operation = operation or " ".join(args[:2])
        run_env = dict(GIT_ENV)
        if env:
            run_env.update(env)

        logger.debug(f"Running in {cwd}: {' '.join(command)}")
        try:
            return git.Git(str(cwd)).execute(
                command,
                kill_after_timeout=timeout or self.timeout,
                env=run_env,
            )
        except git.exc.GitCommandError as e:
            stderr = stderr_of(e)
            status = e.status if isinstance(e.status, int) else None
            error_class = GitTimeoutError if is_timeout(e) else GitOperationError
            raise error_class(operation, stderr=stderr, status=status, command=e.command) from e
        except git.exc.GitCommandNotFound as e:
            # Raised when the process cannot start, e.g. cwd no longer exists
            raise GitOperationError(operation, stderr=str(e), command=command) from e

    def succeeds(self, cwd: PathLike, *args: str) -> bool:
        """True when ``git <args>`` exits zero."""
        try:
            self.run(cwd, *args)
            return True
        except GitTimeoutError:
            raise
        except GitOperationError:
            return False

    def has_local_branch(self, repo_path: PathLike, branch_name: str) -> bool:
        return self.succeeds(repo_path, "show-ref", "--verify", "--quiet", f"refs/heads/{branch_name}")

    def has_remote_branch(self, repo_path: PathLike, branch_name: str) -> bool:
        return self.succeeds(
            repo_path, "show-ref", "--verify", "--quiet",
            f"refs/remotes/{self.remote_name}/{branch_name}",
        )

    def current_branch(self, path: PathLike) -> str:
        """Branch checked out at ``path`` (``HEAD`` when detached)."""
        return self.run(path, "rev-parse", "--abbrev-ref", "HEAD", operation="read HEAD").strip()

    def checkout(self, repo_path: PathLike, branch_name: str) -> None:
        self.run(repo_path, "checkout", branch_name, operation=f"checkout {branch_name}")

    def checkout_tracking(self, repo_path: PathLike, branch_name: str, start_point: Optional[str] = None) -> None:
        """Create ``branch_name`` from ``start_point`` (default its remote counterpart) and check it out."""
        start_point = start_point or f"{self.remote_name}/{branch_name}"
        self.run(repo_path, "checkout", "-b", branch_name, start_point, operation=f"checkout -b {branch_name}")

    def create_tracking_branch(self, repo_path: PathLike, branch_name: str) -> None:
        """Create a local branch from its remote counterpart without checking it out."""
        self.run(
            repo_path, "branch", "--track", branch_name, f"{self.remote_name}/{branch_name}",
            operation=f"branch {branch_name}",
        )

    def fetch(self, repo_path: PathLike) -> None:
        self.run(repo_path, "fetch", self.remote_name, operation="fetch")

    def pull(self, repo_path: PathLike, branch_name: str) -> None:
        self.run(repo_path, "pull", "--ff-only", self.remote_name, branch_name, operation=f"pull {branch_name}")

    def remote_branches(self, repo_path: PathLike) -> Sequence[str]:
        """Branch names under refs/remotes/<remote>, without the remote prefix."""
        output = self.run(
            repo_path, "for-each-ref", "--format=%(refname:short)",
            f"refs/remotes/{self.remote_name}", operation="list remote branches",
        )
        prefix = f"{self.remote_name}/"
        branches = []
        for line in output.splitlines():
            line = line.strip()
            if line.startswith(prefix) and line != f"{prefix}HEAD":
                branches.append(line[len(prefix):])
        return branches

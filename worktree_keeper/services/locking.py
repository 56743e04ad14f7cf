"""Per-repository mutual exclusion for worktree mutations."""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from worktree_keeper.constants import LOCK_DIR_NAME
from worktree_keeper.logging_config import get_logger

# Import fcntl for POSIX file locking (Unix/Linux/macOS)
try:
    import fcntl
    HAS_FCNTL = True
except ImportError:
    HAS_FCNTL = False

logger = get_logger(__name__)


class RepositoryLocks:
    """One lock per canonical repository name.

    The thread lock serializes work inside this process; the optional flock
    on ``<lock_dir>/<name>.lock`` extends that to every process sharing the
    same repository root. Different repositories never contend.
    """

    def __init__(self, lock_dir: Optional[Path] = None):
        self.lock_dir = Path(lock_dir) if lock_dir is not None else None
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @classmethod
    def for_root(cls, repo_root: Path, file_locks: bool = True) -> "RepositoryLocks":
        return cls(Path(repo_root) / LOCK_DIR_NAME if file_locks else None)

    def _thread_lock(self, name: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, name: str, file_lock: bool = True) -> Iterator[None]:
        """Hold the exclusive lock for repository ``name`` for the duration of the block.

        Readers pass ``file_lock=False`` so they never create lock files.
        """
        with self._thread_lock(name):
            logger.debug(f"Acquired lock for {name}")
            try:
                if file_lock:
                    with self._file_lock(name):
                        yield
                else:
                    yield
            finally:
                logger.debug(f"Released lock for {name}")

    @contextmanager
    def _file_lock(self, name: str) -> Iterator[None]:
        if self.lock_dir is None or not HAS_FCNTL:
            yield
            return

        lock_file = self.lock_dir / f"{name}.lock"
        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
            fh = open(lock_file, "a")
        except OSError as e:
            logger.warning(f"Cannot open lock file {lock_file}, locking within this process only: {e}")
            yield
            return

        with fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
                except OSError as e:
                    logger.debug(f"Error releasing file lock {lock_file}: {e}")

    def is_held(self, name: str) -> bool:
        """True while some thread of this process holds the lock for ``name``."""
        return self._thread_lock(name).locked()

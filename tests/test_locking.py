"""Tests for per-repository locks"""
import threading
import time

from worktree_keeper.services.locking import RepositoryLocks


class TestRepositoryLocks:
    """Test mutual exclusion per repository name."""

    def test_hold_marks_lock(self, temp_dir):
        locks = RepositoryLocks(temp_dir / "locks")

        with locks.hold("demo"):
            assert locks.is_held("demo")
            assert not locks.is_held("other")
        assert not locks.is_held("demo")

    def test_lock_file_created(self, temp_dir):
        locks = RepositoryLocks.for_root(temp_dir)

        with locks.hold("demo"):
            pass

        assert (temp_dir / ".worktree-locks" / "demo.lock").exists()

    def test_file_locks_disabled(self, temp_dir):
        locks = RepositoryLocks.for_root(temp_dir, file_locks=False)

        with locks.hold("demo"):
            pass

        assert locks.lock_dir is None
        assert not (temp_dir / ".worktree-locks").exists()

    def test_thread_lock_only(self, temp_dir):
        locks = RepositoryLocks.for_root(temp_dir)

        with locks.hold("demo", file_lock=False):
            assert locks.is_held("demo")

        assert not (temp_dir / ".worktree-locks").exists()

    def test_unusable_lock_dir(self, temp_dir):
        (temp_dir / "blocker").write_text("a file, not a directory\n")
        locks = RepositoryLocks(temp_dir / "blocker" / "locks")

        with locks.hold("demo"):
            assert locks.is_held("demo")
        assert not locks.is_held("demo")

    def test_same_repository_serialized(self, temp_dir):
        locks = RepositoryLocks(temp_dir / "locks")
        events = []

        def worker(label):
            with locks.hold("demo"):
                events.append(f"{label}-start")
                time.sleep(0.05)
                events.append(f"{label}-end")

        threads = [threading.Thread(target=worker, args=(label,)) for label in ("a", "b")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Each critical section finishes before the next starts
        assert events[0][0] == events[1][0]
        assert events[2][0] == events[3][0]

    def test_different_repositories_do_not_contend(self, temp_dir):
        locks = RepositoryLocks(temp_dir / "locks")
        acquired = threading.Event()

        def other():
            with locks.hold("other"):
                acquired.set()

        with locks.hold("demo"):
            thread = threading.Thread(target=other)
            thread.start()
            assert acquired.wait(timeout=5)
            thread.join()

    def test_released_after_exception(self, temp_dir):
        locks = RepositoryLocks(temp_dir / "locks")

        try:
            with locks.hold("demo"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert not locks.is_held("demo")

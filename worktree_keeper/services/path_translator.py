"""Rewrites absolute paths inside git pointer files between container and host roots."""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]

GITDIR_PREFIX = "gitdir: "


def _replace_root(path: str, old_root: str, new_root: str) -> str:
    """Swap ``old_root`` for ``new_root`` when it is a whole leading path component."""
    if path == old_root:
        return new_root
    if path.startswith(old_root.rstrip("/") + "/"):
        return new_root.rstrip("/") + path[len(old_root.rstrip("/")):]
    return path


class PathTranslator:
    """Translate between the process's (container) view and the host's view of the roots.

    When both roots are equal every translation is the identity. Nothing
    outside this class joins or replaces roots in path strings.
    """

    def __init__(self, container_root: PathLike, host_root: PathLike):
        self.container_root = os.path.normpath(str(container_root))
        self.host_root = os.path.normpath(str(host_root))

    @property
    def is_identity(self) -> bool:
        return self.container_root == self.host_root

    def to_container_path(self, path: PathLike) -> str:
        path = str(path)
        if self.is_identity or self._owning_root(path) != self.host_root:
            return path
        return _replace_root(path, self.host_root, self.container_root)

    def to_host_path(self, path: PathLike) -> str:
        path = str(path)
        if self.is_identity or self._owning_root(path) != self.container_root:
            return path
        return _replace_root(path, self.container_root, self.host_root)

    def normalize(self, path: PathLike) -> str:
        """Container form without trailing separators; the key for comparing worktree paths."""
        path = str(path)
        if not path:
            return path
        return os.path.normpath(self.to_container_path(path.rstrip("/") or "/"))

    def same_path(self, left: PathLike, right: PathLike) -> bool:
        return self.normalize(left) == self.normalize(right)

    @staticmethod
    def _is_under(path: str, root: str) -> bool:
        return path == root or path.startswith(root.rstrip("/") + "/")

    def _owning_root(self, path: str) -> Optional[str]:
        # Longest match wins when one root is nested inside the other
        matches = [root for root in (self.container_root, self.host_root) if self._is_under(path, root)]
        return max(matches, key=len) if matches else None

    # Pointer file contents

    def pointer_to_container(self, content: str) -> str:
        return self._translate_pointer(content, to_host=False)

    def pointer_to_host(self, content: str) -> str:
        return self._translate_pointer(content, to_host=True)

    def _translate_pointer(self, content: str, to_host: bool) -> str:
        content = content.strip()
        translate = self.to_host_path if to_host else self.to_container_path
        if content.startswith(GITDIR_PREFIX):
            return GITDIR_PREFIX + translate(content[len(GITDIR_PREFIX):].strip())
        return translate(content)

    @staticmethod
    def pointer_target(content: str) -> str:
        content = content.strip()
        if content.startswith(GITDIR_PREFIX):
            return content[len(GITDIR_PREFIX):].strip()
        return content

    def pointer_target_exists(self, content: str) -> bool:
        """True if the pointer resolves from either the container or the host form."""
        target = self.pointer_target(content)
        return os.path.exists(self.to_container_path(target)) or os.path.exists(self.to_host_path(target))

    # Pointer files on disk

    def localize_worktree(self, worktree_path: PathLike, repo_path: PathLike) -> bool:
        """Leave the container form in every pointer file of one worktree.

        Rewrites the worktree's ``.git`` file and the matching ``gitdir`` files
        under ``<repo>/.git/worktrees/*/``. Failures are logged, never raised.

        Returns:
            True if every pointer now resolves from the container view
        """
        if self.is_identity:
            return self._pointer_resolves(Path(worktree_path) / ".git")

        ok = self._rewrite(Path(worktree_path) / ".git", to_host=False)
        for gitdir_file in self.gitdir_files(repo_path):
            try:
                content = gitdir_file.read_text(encoding="utf-8").strip()
            except OSError as e:
                logger.warning(f"Failed to read {gitdir_file}: {e}")
                ok = False
                continue
            target = self.normalize(os.path.dirname(self.pointer_target(content)))
            if target != self.normalize(worktree_path):
                continue
            container_content = self.pointer_to_container(content)
            if container_content != content and not os.path.exists(container_content):
                logger.warning(f"Container path {container_content} does not exist, leaving {gitdir_file}")
                ok = False
                continue
            ok = self._rewrite(gitdir_file, to_host=False) and ok
        return ok

    def publish_host_pointer(self, worktree_path: PathLike) -> bool:
        """Write the host form into a worktree's ``.git`` file for tools running on the host.

        Must be undone with :meth:`restore_container_pointer` before this
        process runs git in that worktree again.
        """
        if self.is_identity:
            return True
        return self._rewrite(Path(worktree_path) / ".git", to_host=True)

    def restore_container_pointer(self, worktree_path: PathLike) -> bool:
        if self.is_identity:
            return True
        return self._rewrite(Path(worktree_path) / ".git", to_host=False)

    @contextmanager
    def container_pointer(self, worktree_path: PathLike) -> Iterator[None]:
        """Temporarily put the container form in ``.git``; restore whatever was there on exit."""
        git_file = Path(worktree_path) / ".git"
        original = None
        if not self.is_identity:
            try:
                original = git_file.read_text(encoding="utf-8")
                localized = self.pointer_to_container(original)
                if localized == original.strip():
                    original = None
                else:
                    git_file.write_text(localized + "\n", encoding="utf-8")
            except OSError as e:
                logger.warning(f"Failed to localize {git_file}: {e}")
                original = None
        try:
            yield
        finally:
            if original is not None:
                try:
                    git_file.write_text(original, encoding="utf-8")
                except OSError as e:
                    logger.warning(f"Failed to restore {git_file}: {e}")

    @staticmethod
    def gitdir_files(repo_path: PathLike) -> List[Path]:
        worktrees_dir = Path(repo_path) / ".git" / "worktrees"
        if not worktrees_dir.is_dir():
            return []
        return sorted(
            entry / "gitdir"
            for entry in worktrees_dir.iterdir()
            if entry.is_dir() and (entry / "gitdir").is_file()
        )

    def _rewrite(self, pointer_file: Path, to_host: bool) -> bool:
        try:
            content = pointer_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.warning(f"Failed to read pointer file {pointer_file}: {e}")
            return False

        new_content = self._translate_pointer(content, to_host=to_host)
        if new_content != content:
            try:
                pointer_file.write_text(new_content + "\n", encoding="utf-8")
            except OSError as e:
                logger.warning(f"Failed to rewrite pointer file {pointer_file}: {e}")
                return False
            logger.info(f"Rewrote {pointer_file} to {'host' if to_host else 'container'} path")
            logger.debug(f"  Old: {content}")
            logger.debug(f"  New: {new_content}")

        if not to_host and not self.pointer_target_exists(new_content):
            logger.warning(f"Pointer in {pointer_file} does not resolve: {new_content}")
            return False
        return True

    def _pointer_resolves(self, pointer_file: Path) -> bool:
        try:
            return self.pointer_target_exists(pointer_file.read_text(encoding="utf-8"))
        except OSError as e:
            logger.warning(f"Failed to read pointer file {pointer_file}: {e}")
            return False

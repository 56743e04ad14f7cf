"""Tests for PathTranslator"""
import pytest

from worktree_keeper.services.path_translator import PathTranslator


@pytest.fixture
def translator():
    return PathTranslator("/repos", "/Users/me/code/repos")


class TestPathTranslation:
    """Test root swapping."""

    def test_identity(self):
        translator = PathTranslator("/repos", "/repos/")
        assert translator.is_identity
        assert translator.to_host_path("/repos/a") == "/repos/a"
        assert translator.to_container_path("/repos/a") == "/repos/a"

    def test_to_host(self, translator):
        assert translator.to_host_path("/repos/Tree/x") == "/Users/me/code/repos/Tree/x"
        assert translator.to_host_path("/repos") == "/Users/me/code/repos"

    def test_to_container(self, translator):
        assert translator.to_container_path("/Users/me/code/repos/demo/.git") == "/repos/demo/.git"

    def test_paths_outside_roots_unchanged(self, translator):
        assert translator.to_host_path("/tmp/x") == "/tmp/x"
        assert translator.to_container_path("/tmp/x") == "/tmp/x"

    def test_root_must_be_whole_component(self, translator):
        assert translator.to_host_path("/repos-other/x") == "/repos-other/x"

    def test_already_translated_is_stable(self, translator):
        host = translator.to_host_path("/repos/a")
        assert translator.to_host_path(host) == host
        assert translator.to_container_path("/repos/a") == "/repos/a"

    def test_nested_roots(self):
        translator = PathTranslator("/data", "/data/host")
        assert translator.to_container_path("/data/host/a") == "/data/a"
        assert translator.to_host_path("/data/a") == "/data/host/a"
        assert translator.to_host_path("/data/host/a") == "/data/host/a"

    def test_normalize_and_same_path(self, translator):
        assert translator.normalize("/Users/me/code/repos/Tree/x/") == "/repos/Tree/x"
        assert translator.same_path("/repos/Tree/x", "/Users/me/code/repos/Tree/x/")
        assert not translator.same_path("/repos/Tree/x", "/repos/Tree/y")


class TestPointerContents:
    """Test translation of pointer file contents."""

    def test_git_file(self, translator):
        content = "gitdir: /Users/me/code/repos/demo/.git/worktrees/x\n"
        assert translator.pointer_to_container(content) == "gitdir: /repos/demo/.git/worktrees/x"
        assert translator.pointer_to_host("gitdir: /repos/demo/.git/worktrees/x") == (
            "gitdir: /Users/me/code/repos/demo/.git/worktrees/x"
        )

    def test_plain_gitdir_file(self, translator):
        assert translator.pointer_to_container("/Users/me/code/repos/Tree/x/.git") == "/repos/Tree/x/.git"

    def test_pointer_target(self):
        assert PathTranslator.pointer_target("gitdir: /a/b\n") == "/a/b"
        assert PathTranslator.pointer_target("/a/b") == "/a/b"


class TestPointerFiles:
    """Test rewriting pointer files on disk."""

    @pytest.fixture
    def layout(self, temp_dir):
        """A fake clone and worktree whose pointers use the host root."""
        container_root = temp_dir / "container"
        host_root = temp_dir / "host"
        repo = container_root / "demo"
        worktree = container_root / "Tree" / "demo" / "demo-feature-x"
        admin = repo / ".git" / "worktrees" / "demo-feature-x"
        admin.mkdir(parents=True)
        worktree.mkdir(parents=True)

        (worktree / ".git").write_text(f"gitdir: {host_root}/demo/.git/worktrees/demo-feature-x\n")
        (admin / "gitdir").write_text(f"{host_root}/Tree/demo/demo-feature-x/.git\n")

        translator = PathTranslator(container_root, host_root)
        return translator, repo, worktree, admin, host_root

    def test_localize_worktree(self, layout):
        translator, repo, worktree, admin, _ = layout

        assert translator.localize_worktree(worktree, repo)
        assert (worktree / ".git").read_text().strip() == f"gitdir: {admin}"
        assert (admin / "gitdir").read_text().strip() == str(worktree / ".git")

    def test_localize_leaves_other_worktrees(self, layout):
        translator, repo, worktree, _, host_root = layout
        other_admin = repo / ".git" / "worktrees" / "other"
        other_admin.mkdir()
        other_content = f"{host_root}/Tree/demo/other/.git"
        (other_admin / "gitdir").write_text(other_content + "\n")

        translator.localize_worktree(worktree, repo)

        assert (other_admin / "gitdir").read_text().strip() == other_content

    def test_publish_and_restore(self, layout):
        translator, repo, worktree, admin, host_root = layout
        translator.localize_worktree(worktree, repo)

        assert translator.publish_host_pointer(worktree)
        assert (worktree / ".git").read_text().strip() == (
            f"gitdir: {host_root}/demo/.git/worktrees/demo-feature-x"
        )

        assert translator.restore_container_pointer(worktree)
        assert (worktree / ".git").read_text().strip() == f"gitdir: {admin}"

    def test_container_pointer_restores_original(self, layout):
        translator, _, worktree, admin, _ = layout
        original = (worktree / ".git").read_text()

        with translator.container_pointer(worktree):
            assert (worktree / ".git").read_text().strip() == f"gitdir: {admin}"

        assert (worktree / ".git").read_text() == original

    def test_missing_pointer_is_advisory(self, layout, temp_dir):
        translator, repo, _, _, _ = layout
        assert translator.localize_worktree(temp_dir / "nowhere", repo) is False

    def test_gitdir_files(self, layout):
        translator, repo, _, admin, _ = layout
        assert PathTranslator.gitdir_files(repo) == [admin / "gitdir"]

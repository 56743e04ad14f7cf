"""Pytest fixtures for worktree-keeper tests"""
import tempfile
from pathlib import Path

import git
import pytest

from worktree_keeper.config import Config
from worktree_keeper.core import WorktreeKeeper
from worktree_keeper.models.worktree import ChangeType, WorktreeIdentity

REPO_NAME = "demo-repo"
REPO_KEY = "demo"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _init_repo(path: Path) -> git.Repo:
    repo = git.Repo.init(path)
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
    return repo


@pytest.fixture
def make_upstream(temp_dir):
    """Factory for bare upstream repositories under ``<temp_dir>/remotes``.

    The first branch given is the default branch; the others start at the
    same commit.
    """
    repos = []

    def _make(name: str = REPO_NAME, branches=("main", "dev")) -> Path:
        seed_path = temp_dir / "seeds" / name
        seed_path.mkdir(parents=True)
        seed = _init_repo(seed_path)
        repos.append(seed)

        (seed_path / "README.md").write_text(f"# {name}\n")
        seed.index.add(["README.md"])
        seed.index.commit("Initial commit")
        seed.git.branch("-M", branches[0])
        for branch in branches[1:]:
            seed.git.branch(branch)

        bare_path = temp_dir / "remotes" / f"{name}.git"
        repos.append(seed.clone(str(bare_path), bare=True))
        return bare_path

    yield _make

    for repo in repos:
        repo.close()


@pytest.fixture
def make_config(temp_dir):
    """Factory for a Config whose roots all live in the temporary directory."""
    def _make(**overrides) -> Config:
        values = {
            "repo_root": temp_dir / "repos",
            "repositories": {REPO_KEY: REPO_NAME},
            "clone_url_template": str(temp_dir / "remotes" / "{name}.git"),
            "github_token": "test-token",
            "git_timeout": 60,
            "clone_timeout": 60,
        }
        values.update(overrides)
        return Config(**values)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def upstream(make_upstream):
    """Upstream with main and dev."""
    return make_upstream()


@pytest.fixture
def keeper(config, upstream):
    keeper = WorktreeKeeper(config)
    yield keeper
    keeper.close()


@pytest.fixture
def descriptor(keeper):
    return keeper.resolver.resolve(REPO_KEY)


@pytest.fixture
def identity(descriptor):
    return WorktreeIdentity(repository=descriptor, change_type=ChangeType.FEATURE, name="login")


@pytest.fixture
def clone(keeper, descriptor):
    """The primary clone of the upstream, bootstrapped."""
    keeper.bootstrapper.ensure_cloned(descriptor)
    repo = git.Repo(descriptor.local_path)
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
    yield repo
    repo.close()

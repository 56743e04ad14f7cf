"""Tests for worktree naming and data models"""
from pathlib import Path

import pytest

from worktree_keeper.exceptions import GitOperationError, InvalidWorktreeNameError
from worktree_keeper.models.repository import RepositoryDescriptor
from worktree_keeper.models.worktree import (
    BatchResult,
    ChangeType,
    WorktreeIdentity,
    WorktreeRecord,
    split_branch_name,
)


@pytest.fixture
def repository():
    return RepositoryDescriptor(
        key="frontend",
        canonical_name="sideline-frontend",
        clone_url="https://github.com/org/sideline-frontend",
        local_path=Path("/repos/sideline-frontend"),
    )


class TestChangeType:
    """Test change type parsing."""

    def test_parse_known_values(self):
        assert ChangeType.parse("feature") is ChangeType.FEATURE
        assert ChangeType.parse("qa") is ChangeType.QA
        assert ChangeType.parse(ChangeType.FIX) is ChangeType.FIX

    def test_parse_unknown_value(self):
        with pytest.raises(InvalidWorktreeNameError, match="Invalid type 'hotfix'"):
            ChangeType.parse("hotfix")

    def test_values(self):
        assert ChangeType.values() == ["feature", "bugfix", "fix", "qa"]


class TestWorktreeIdentity:
    """Test derived branch names and paths."""

    def test_branch_name_and_path(self, repository):
        identity = WorktreeIdentity(repository, ChangeType.FEATURE, "login")

        assert identity.branch_name == "sideline-frontend-feature-login"
        assert identity.worktree_path(Path("/repos/Tree")) == Path(
            "/repos/Tree/sideline-frontend/sideline-frontend-feature-login"
        )

    def test_change_type_given_as_string(self, repository):
        identity = WorktreeIdentity(repository, "bugfix", "crash")
        assert identity.change_type is ChangeType.BUGFIX

    @pytest.mark.parametrize("name", ["", "with space", "slash/name", "dot.name", "ümlaut"])
    def test_invalid_names(self, repository, name):
        with pytest.raises(InvalidWorktreeNameError):
            WorktreeIdentity(repository, ChangeType.FEATURE, name)

    def test_invalid_name_is_value_error(self, repository):
        with pytest.raises(ValueError):
            WorktreeIdentity(repository, ChangeType.FEATURE, "../escape")

    @pytest.mark.parametrize("change_type", list(ChangeType))
    @pytest.mark.parametrize("name", ["login", "multi-part-name", "under_score", "X1"])
    def test_branch_name_round_trip(self, repository, change_type, name):
        identity = WorktreeIdentity(repository, change_type, name)
        parsed = WorktreeIdentity.from_branch_name(repository, identity.branch_name)

        assert parsed == identity

    def test_str_is_branch_name(self, repository):
        assert str(WorktreeIdentity(repository, "qa", "smoke")) == "sideline-frontend-qa-smoke"


class TestSplitBranchName:
    """Test parsing names that may not follow the convention."""

    def test_hyphenated_canonical_name(self):
        assert split_branch_name("sideline-frontend", "sideline-frontend-fix-a-b") == (ChangeType.FIX, "a-b")

    @pytest.mark.parametrize(
        "branch",
        [
            "main",
            "dev",
            "sideline-frontend",
            "sideline-frontend-feature",
            "sideline-frontend-feature-",
            "sideline-frontend-hotfix-login",
            "sideline-backend-feature-login",
            "sideline-frontend-feature-bad.name",
        ],
    )
    def test_outside_convention(self, branch):
        assert split_branch_name("sideline-frontend", branch) is None


class TestWorktreeRecord:
    """Test observed worktree state."""

    def test_consistent(self, repository):
        identity = WorktreeIdentity(repository, "feature", "login")
        record = WorktreeRecord(identity, "/repos/Tree/x", identity.branch_name, True, True)

        assert record.is_consistent
        assert record.branch_name == identity.branch_name

    def test_inconsistent_branch(self, repository):
        identity = WorktreeIdentity(repository, "feature", "login")
        record = WorktreeRecord(identity, "/repos/Tree/x", "something-else", True, True)

        assert not record.is_consistent

    def test_to_dict(self, repository):
        identity = WorktreeIdentity(repository, "feature", "login")
        record = WorktreeRecord(identity, "/repos/Tree/x", identity.branch_name, False, True)

        assert record.to_dict() == {
            "repository_key": "frontend",
            "canonical_name": "sideline-frontend",
            "change_type": "feature",
            "name": "login",
            "branch": "sideline-frontend-feature-login",
            "path": "/repos/Tree/x",
            "registered_in_git": False,
            "directory_exists": True,
        }


class TestBatchResult:
    """Test batch outcome helpers."""

    def test_all_failed(self, repository):
        result = BatchResult(errors={"frontend": GitOperationError("clone")})
        assert result.all_failed

    def test_partial_failure(self, repository):
        identity = WorktreeIdentity(repository, "feature", "login")
        record = WorktreeRecord(identity, "/p", identity.branch_name, True, True)
        result = BatchResult(worktrees=[record], errors={"viewer": GitOperationError("clone")})

        assert not result.all_failed
        assert result.to_dict()["errors"] == [
            {"repo": "viewer", "error": "Git operation 'clone' failed"}
        ]

    def test_empty(self):
        assert not BatchResult().all_failed

"""Tests for the GitHub backlog tracker"""
from pathlib import Path
from unittest.mock import Mock

import pytest
from github.GithubException import GithubException

from worktree_keeper.models.repository import RepositoryDescriptor
from worktree_keeper.models.worktree import WorktreeIdentity, WorktreeRecord
from worktree_keeper.services.backlog_service import (
    GitHubBacklog,
    backlog_body,
    backlog_title,
    sort_branches,
)


@pytest.fixture
def identity():
    descriptor = RepositoryDescriptor("frontend", "sideline-frontend", "https://x", Path("/repos/sideline-frontend"))
    return WorktreeIdentity(descriptor, "feature", "login")


@pytest.fixture
def record(identity):
    return WorktreeRecord(identity, "/repos/Tree/sideline-frontend/sideline-frontend-feature-login", identity.branch_name, True, True)


@pytest.fixture
def mock_github():
    return Mock()


@pytest.fixture
def backlog(mock_github):
    return GitHubBacklog("token", "acme", github=mock_github)


def make_issue(title, body, number=7):
    issue = Mock()
    issue.title = title
    issue.body = body
    issue.number = number
    issue.pull_request = None
    return issue


class TestBacklogFormatting:
    """Test issue title and body."""

    def test_title(self, identity):
        assert backlog_title(identity) == "sideline-frontend: feature-login"

    def test_body(self, record):
        body = backlog_body(record)
        assert "Branch: sideline-frontend-feature-login" in body
        assert "Type: feature" in body
        assert "Path: /repos/Tree/sideline-frontend/sideline-frontend-feature-login" in body


class TestGitHubBacklog:
    """Test issue creation and closing."""

    def test_record_creates_issue(self, backlog, mock_github, record):
        repo = mock_github.get_repo.return_value
        repo.get_issues.return_value = []

        backlog.record(record)

        mock_github.get_repo.assert_called_once_with("acme/sideline-frontend")
        repo.create_issue.assert_called_once_with(
            title="sideline-frontend: feature-login", body=backlog_body(record)
        )

    def test_record_skips_existing(self, backlog, mock_github, record):
        repo = mock_github.get_repo.return_value
        repo.get_issues.return_value = [make_issue(backlog_title(record.identity), backlog_body(record))]

        backlog.record(record)

        repo.create_issue.assert_not_called()

    def test_remove_closes_matching_issue(self, backlog, mock_github, record):
        other = make_issue("sideline-frontend: feature-login", "Branch: something-else", number=1)
        pull = make_issue(backlog_title(record.identity), backlog_body(record), number=2)
        pull.pull_request = Mock()
        match = make_issue(backlog_title(record.identity), backlog_body(record), number=3)
        mock_github.get_repo.return_value.get_issues.return_value = [other, pull, match]

        backlog.remove(record.identity)

        match.edit.assert_called_once_with(state="closed")
        other.edit.assert_not_called()
        pull.edit.assert_not_called()

    def test_remove_without_issue(self, backlog, mock_github, identity):
        mock_github.get_repo.return_value.get_issues.return_value = []
        backlog.remove(identity)

    def test_repository_cached(self, backlog, mock_github, identity):
        mock_github.get_repo.return_value.get_issues.return_value = []
        backlog.remove(identity)
        backlog.remove(identity)

        mock_github.get_repo.assert_called_once()

    def test_validate_token(self, backlog, mock_github):
        mock_github.get_user.return_value.login = "octocat"
        assert backlog.validate_token() == "octocat"

    def test_validate_token_rejected(self, backlog, mock_github):
        mock_github.get_user.side_effect = GithubException(401, {"message": "Bad credentials"}, None)
        with pytest.raises(GithubException):
            backlog.validate_token()


class TestBranchListing:
    """Test branch ordering."""

    def test_sort_branches(self):
        assert sort_branches(["zeta", "develop", "alpha", "master", "dev", "main"]) == [
            "main", "master", "dev", "develop", "alpha", "zeta",
        ]

    def test_list_branches(self, backlog, mock_github):
        branches = []
        for name in ("topic", "dev", "main"):
            branch = Mock()
            branch.name = name
            branches.append(branch)
        mock_github.get_repo.return_value.get_branches.return_value = branches

        assert backlog.list_branches("sideline-frontend") == ["main", "dev", "topic"]

    def test_list_branches_error(self, backlog, mock_github):
        mock_github.get_repo.return_value.get_branches.side_effect = GithubException(404, {"message": "Not Found"}, None)
        with pytest.raises(GithubException):
            backlog.list_branches("missing")

"""Tests for RepositoryResolver"""
from pathlib import Path

import pytest

from worktree_keeper.exceptions import RepositoryNotFoundError
from worktree_keeper.models.repository import RepositoryDescriptor
from worktree_keeper.services.repository_resolver import RepositoryResolver


def make_descriptor(key, name):
    return RepositoryDescriptor(key, name, f"https://github.com/org/{name}", Path("/repos") / name)


@pytest.fixture
def resolver():
    return RepositoryResolver(
        [
            make_descriptor("frontend", "sideline-frontend"),
            make_descriptor("viewer", "ohif-viewer"),
        ]
    )


class TestRepositoryResolver:
    """Test lookups in both directions."""

    def test_resolve_by_key(self, resolver):
        assert resolver.resolve("frontend").canonical_name == "sideline-frontend"

    def test_resolve_by_canonical_name(self, resolver):
        assert resolver.resolve("ohif-viewer").key == "viewer"

    def test_both_identifiers_give_same_descriptor(self, resolver):
        assert resolver.resolve("viewer") is resolver.resolve("ohif-viewer")

    def test_unknown(self, resolver):
        with pytest.raises(RepositoryNotFoundError, match="Invalid repository: nope"):
            resolver.resolve("nope")
        assert resolver.find("nope") is None
        assert "nope" not in resolver

    def test_all_keeps_order(self, resolver):
        assert [d.key for d in resolver.all()] == ["frontend", "viewer"]
        assert len(resolver) == 2

    def test_key_equal_to_own_name(self):
        resolver = RepositoryResolver([make_descriptor("api", "api")])
        assert resolver.resolve("api").key == "api"

    def test_ambiguous_key_rejected(self):
        with pytest.raises(ValueError, match="also the name"):
            RepositoryResolver([make_descriptor("a", "b"), make_descriptor("b", "c")])

    def test_duplicate_rejected(self):
        with pytest.raises(ValueError, match="configured twice"):
            RepositoryResolver([make_descriptor("a", "x"), make_descriptor("b", "x")])

"""Maps repository keys and upstream names to descriptors."""

from typing import Dict, Iterable, Optional, Tuple

from worktree_keeper.exceptions import RepositoryNotFoundError
from worktree_keeper.models.repository import RepositoryDescriptor


class RepositoryResolver:
    """Lookup of configured repositories by key or by canonical name. Pure, no I/O."""

    def __init__(self, descriptors: Iterable[RepositoryDescriptor]):
        self._descriptors: Tuple[RepositoryDescriptor, ...] = tuple(descriptors)
        self._by_key: Dict[str, RepositoryDescriptor] = {}
        self._by_name: Dict[str, RepositoryDescriptor] = {}

        for descriptor in self._descriptors:
            if descriptor.key in self._by_key:
                raise ValueError(f"Repository key '{descriptor.key}' is configured twice")
            if descriptor.canonical_name in self._by_name:
                raise ValueError(f"Repository '{descriptor.canonical_name}' is configured twice")
            self._by_key[descriptor.key] = descriptor
            self._by_name[descriptor.canonical_name] = descriptor

        # A key spelled like another repository's name would make lookups ambiguous
        for key, descriptor in self._by_key.items():
            other = self._by_name.get(key)
            if other is not None and other is not descriptor:
                raise ValueError(
                    f"Repository key '{key}' is also the name of repository '{other.key}'"
                )

    def find(self, identifier: str) -> Optional[RepositoryDescriptor]:
        """Descriptor for a canonical name or a key, canonical name first."""
        return self._by_name.get(identifier) or self._by_key.get(identifier)

    def resolve(self, identifier: str) -> RepositoryDescriptor:
        """Like :meth:`find`, but raises RepositoryNotFoundError for unknown identifiers."""
        descriptor = self.find(identifier)
        if descriptor is None:
            raise RepositoryNotFoundError(identifier)
        return descriptor

    def all(self) -> Tuple[RepositoryDescriptor, ...]:
        return self._descriptors

    def __contains__(self, identifier: str) -> bool:
        return self.find(identifier) is not None

    def __len__(self) -> int:
        return len(self._descriptors)

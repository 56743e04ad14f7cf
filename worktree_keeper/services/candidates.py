"""Ordered fallbacks: the first candidate whose predicate holds and whose action succeeds wins."""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from worktree_keeper.exceptions import GitOperationError, GitTimeoutError
from worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)


def _nothing() -> None:
    return None


@dataclass
class Candidate:
    """One option in a priority list."""

    label: str
    predicate: Callable[[], bool]
    action: Callable[[], None] = _nothing


def first_success(candidates: Iterable[Candidate], purpose: str) -> Optional[str]:
    """Evaluate candidates in order and return the label of the first that succeeds.

    A candidate is skipped when its predicate is false or its action fails
    with a git error. Timeouts are not a reason to try the next candidate
    and propagate.

    Returns:
        The winning label, or None when every candidate was skipped
    """
    for candidate in candidates:
        if not candidate.predicate():
            logger.debug(f"{purpose}: {candidate.label} not available")
            continue
        try:
            candidate.action()
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.debug(f"{purpose}: {candidate.label} failed: {e}")
            continue
        logger.debug(f"{purpose}: using {candidate.label}")
        return candidate.label
    return None

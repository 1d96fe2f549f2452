"""
Completion aggregation -- pure counting.

Responsibility
--------------
Decides whether "all children are completed" for an application (over its
milestones) or a program (over its live applications).  The SQL side that
feeds these counts lives in ``selectors/completion_selector.py``.

Invariants enforced
-------------------
* ``all_completed`` is ``total > 0 and completed == total``.  An entity
  with zero children is never complete: an application with no milestones
  cannot be completed.
* Excluded statuses (rejected / deleted applications) are removed from
  both numerator and denominator.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class CompletionCount:
    """Completed-versus-total count for one parent entity."""

    completed: int
    total: int

    def __post_init__(self) -> None:
        if self.completed < 0 or self.total < 0:
            raise ValueError("Completion counts must be non-negative")
        if self.completed > self.total:
            raise ValueError(
                f"completed ({self.completed}) cannot exceed total ({self.total})"
            )

    @property
    def all_completed(self) -> bool:
        return self.total > 0 and self.completed == self.total

    @property
    def remaining(self) -> int:
        return self.total - self.completed

    def describe(self, noun: str) -> str:
        """'1 out of 2 milestones completed'."""
        return f"{self.completed} out of {self.total} {noun} completed"


def count_completion(
    statuses: Iterable[Enum | str],
    completed_status: Enum | str,
    excluded: Iterable[Enum | str] = (),
) -> CompletionCount:
    """
    Count children statuses.

    Args:
        statuses: Status of every child row.
        completed_status: The status that counts as done.
        excluded: Statuses dropped from the count entirely.

    Returns:
        CompletionCount over the non-excluded children.
    """
    done = _value(completed_status)
    skip = {_value(s) for s in excluded}
    completed = 0
    total = 0
    for status in statuses:
        value = _value(status)
        if value in skip:
            continue
        total += 1
        if value == done:
            completed += 1
    return CompletionCount(completed=completed, total=total)


def count_from_breakdown(
    breakdown: dict[str, int],
    completed_status: Enum | str,
    excluded: Iterable[Enum | str] = (),
) -> CompletionCount:
    """Same as count_completion, over a ``{status: row_count}`` mapping."""
    done = _value(completed_status)
    skip = {_value(s) for s in excluded}
    total = sum(n for status, n in breakdown.items() if _value(status) not in skip)
    completed = sum(n for status, n in breakdown.items() if _value(status) == done)
    return CompletionCount(completed=completed, total=total)


def _value(status: Enum | str) -> str:
    return status.value if isinstance(status, Enum) else str(status)

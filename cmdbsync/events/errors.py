"""Event validation error types."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from cmdbsync.events.validation import FieldProblem


class EventValidationError(ValueError):
    """Raised when an inbound payload is rejected at the boundary.

    Attributes
    ----------
    problems
        Field-level problems that caused the rejection.

    """

    def __init__(self, problems: tuple[FieldProblem, ...]) -> None:
        """Record the problems and build a readable summary."""
        self.problems = problems
        summary = ", ".join(f"{p.field} ({p.kind})" for p in problems)
        super().__init__(f"event rejected: {summary}")

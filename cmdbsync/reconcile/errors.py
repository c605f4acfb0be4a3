"""Failure taxonomy for reconciled events.

Component exceptions are converted into :class:`EventFailure` values at the
processor boundary, so one event's failure is data attached to that event
rather than an exception unwinding through its neighbours.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

if typ.TYPE_CHECKING:
    from cmdbsync.events.validation import FieldProblem
    from cmdbsync.reconcile.state import ProcessingState


class FailureKind(enum.StrEnum):
    """Machine-readable reasons an event failed."""

    VALIDATION = "validation"
    TRANSFORM = "transform"
    CMDB_UNAVAILABLE = "cmdb_unavailable"
    CMDB_CONFLICT = "cmdb_conflict"
    INTERNAL = "internal"

    @property
    def retryable(self) -> bool:
        """Return True when redelivering the same event may succeed."""
        return self is FailureKind.CMDB_UNAVAILABLE


@dc.dataclass(frozen=True, slots=True)
class EventFailure:
    """A failed event together with the payload needed to replay it.

    Attributes
    ----------
    kind
        Failure classification.
    stage
        Last state the event reached before failing.
    message
        Human-readable description.
    payload
        The original inbound payload, unchanged.
    asset_tag
        Asset tag of the event, when it got far enough to have one.
    problems
        Field-level problems for validation failures.

    """

    kind: FailureKind
    stage: ProcessingState
    message: str
    payload: object
    asset_tag: str | None = None
    problems: tuple[FieldProblem, ...] = ()

    @property
    def retryable(self) -> bool:
        """Return True when the failure is worth redelivering."""
        return self.kind.retryable

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-compatible summary (the payload is omitted)."""
        data: dict[str, typ.Any] = {
            "kind": str(self.kind),
            "stage": str(self.stage),
            "description": self.message,
            "retryable": self.retryable,
        }
        if self.asset_tag is not None:
            data["asset_tag"] = self.asset_tag
        if self.problems:
            data["problems"] = [problem.to_dict() for problem in self.problems]
        return data


class RetryableEventError(RuntimeError):
    """Raised by queue workers so the broker redelivers an event."""

    def __init__(self, failure: EventFailure) -> None:
        """Keep the failure for inspection by broker middleware."""
        self.failure = failure
        super().__init__(f"{failure.kind}: {failure.message}")

"""Per-event processing states."""

from __future__ import annotations

import enum


class ProcessingState(enum.StrEnum):
    """States an event passes through inside the processor.

    The happy path is ``RECEIVED → VALIDATED → TRANSFORMED → UPSERTED →
    DONE``. ``FAILED`` is terminal and reachable from any step.
    """

    RECEIVED = "received"
    VALIDATED = "validated"
    TRANSFORMED = "transformed"
    UPSERTED = "upserted"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        """Return True for states that end processing."""
        return self in {ProcessingState.DONE, ProcessingState.FAILED}

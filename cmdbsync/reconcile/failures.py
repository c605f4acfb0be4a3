"""Failure recorders that keep failed events available for replay."""

from __future__ import annotations

import collections
import typing as typ

from cmdbsync.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from cmdbsync.reconcile.errors import EventFailure

logger = get_logger(__name__)

DEFAULT_FAILURE_LOG_MAX = 1000


@typ.runtime_checkable
class FailureRecorder(typ.Protocol):
    """Destination for failed events and their original payloads."""

    async def record(self, failure: EventFailure) -> None:
        """Persist ``failure`` so the event can be replayed later."""
        ...


class InMemoryFailureLog:
    """Process-local failure recorder used when no database is configured.

    The log keeps at most ``max_entries`` failures. Recording beyond that
    evicts the oldest entry and logs a warning naming its asset tag.
    """

    def __init__(self, max_entries: int = DEFAULT_FAILURE_LOG_MAX) -> None:
        """Start with an empty log bounded to ``max_entries`` failures."""
        if max_entries < 1:
            msg = f"max_entries must be positive, got: {max_entries}"
            raise ValueError(msg)
        self._failures: collections.deque[EventFailure] = collections.deque(
            maxlen=max_entries
        )

    def __len__(self) -> int:
        """Return the number of recorded failures."""
        return len(self._failures)

    @property
    def max_entries(self) -> int:
        """Return the number of failures kept before the oldest is evicted."""
        return typ.cast("int", self._failures.maxlen)

    @property
    def failures(self) -> tuple[EventFailure, ...]:
        """Return recorded failures in arrival order."""
        return tuple(self._failures)

    async def record(self, failure: EventFailure) -> None:
        """Append ``failure``, evicting the oldest entry when full."""
        if len(self._failures) == self.max_entries:
            evicted = self._failures[0]
            log_warning(
                logger,
                "Failure log full (%d); dropping oldest failure for asset_tag=%s",
                self.max_entries,
                evicted.asset_tag,
            )
        self._failures.append(failure)

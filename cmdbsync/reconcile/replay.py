"""Replay stored failures through the reconciliation processor."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from cmdbsync.reconcile.observability import ReconcileEventLogger

if typ.TYPE_CHECKING:
    from cmdbsync.reconcile.processor import ReconciliationProcessor
    from cmdbsync.reconcile.storage import FailedEventStore


@dc.dataclass(frozen=True, slots=True)
class ReplaySummary:
    """Outcome of one replay pass.

    Attributes
    ----------
    attempted
        Number of pending failures picked up.
    replayed_ids
        Failures that reconciled successfully and are now marked replayed.
    still_failing_ids
        Failures that failed again and stay pending.

    """

    attempted: int
    replayed_ids: tuple[int, ...] = ()
    still_failing_ids: tuple[int, ...] = ()


class FailedEventReplayer:
    """Feed pending failures back through a processor, oldest first.

    Each stored payload is reprocessed with ``record_failures=False``; a
    repeated failure bumps the attempt count on the existing row instead of
    adding a new one.
    """

    def __init__(
        self,
        store: FailedEventStore,
        processor: ReconciliationProcessor,
        *,
        event_logger: ReconcileEventLogger | None = None,
    ) -> None:
        """Bind the replayer to its store and processor."""
        self._store = store
        self._processor = processor
        self._event_logger = event_logger or ReconcileEventLogger()

    async def replay_pending(self, limit: int | None = None) -> ReplaySummary:
        """Replay up to ``limit`` pending failures sequentially.

        Sequential replay keeps the original arrival order for events that
        share an asset tag.
        """
        pending = await self._store.list_pending(limit)
        replayed: list[int] = []
        still_failing: list[int] = []
        for record in pending:
            outcome = await self._processor.process(
                record.payload, record_failures=False
            )
            if outcome.failure is None:
                await self._store.mark_replayed(record.id)
                replayed.append(record.id)
            else:
                await self._store.mark_attempt_failed(record.id, outcome.failure)
                still_failing.append(record.id)

        summary = ReplaySummary(
            attempted=len(pending),
            replayed_ids=tuple(replayed),
            still_failing_ids=tuple(still_failing),
        )
        self._event_logger.log_replay_completed(summary)
        return summary

"""Structured log events for reconciliation health.

All events are emitted as ``[event.type] key=value`` lines suitable for
parsing by log aggregators. Successful work logs at INFO, retryable failures
and rejected input at WARNING, and failures needing manual review at ERROR.
"""

from __future__ import annotations

import enum
import typing as typ

from cmdbsync.logging import get_logger, log_error, log_info, log_warning
from cmdbsync.reconcile.errors import FailureKind

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from cmdbsync.reconcile.errors import EventFailure
    from cmdbsync.reconcile.processor import ProcessingOutcome
    from cmdbsync.reconcile.replay import ReplaySummary

logger = get_logger(__name__)

_WARNING_KINDS = frozenset({FailureKind.VALIDATION, FailureKind.CMDB_UNAVAILABLE})


class ReconcileEventType(enum.StrEnum):
    """Structured log event types for reconciliation observability."""

    EVENT_PROCESSED = "reconcile.event.processed"
    EVENT_FAILED = "reconcile.event.failed"
    BATCH_COMPLETED = "reconcile.batch.completed"
    REPLAY_COMPLETED = "reconcile.replay.completed"
    RECORD_FAILED = "reconcile.failure.record_failed"


class ReconcileEventLogger:
    """Emit structured reconciliation events through femtologging."""

    def log_event_processed(
        self, outcome: ProcessingOutcome, duration: dt.timedelta
    ) -> None:
        """Log a successfully reconciled event."""
        ci = outcome.ci
        log_info(
            logger,
            "[%s] asset_tag=%s operation=%s status=%s duration_seconds=%.3f",
            ReconcileEventType.EVENT_PROCESSED,
            ci.asset_tag if ci is not None else None,
            outcome.operation,
            ci.status if ci is not None else None,
            duration.total_seconds(),
        )

    def log_event_failed(self, failure: EventFailure) -> None:
        """Log a failed event with its classification."""
        log_fn = log_warning if failure.kind in _WARNING_KINDS else log_error
        log_fn(
            logger,
            "[%s] asset_tag=%s kind=%s stage=%s retryable=%s error=%s",
            ReconcileEventType.EVENT_FAILED,
            failure.asset_tag,
            failure.kind,
            failure.stage,
            failure.retryable,
            failure.message,
        )

    def log_record_failed(self, failure: EventFailure, error: BaseException) -> None:
        """Log a failure that could not be written to the failure recorder."""
        log_error(
            logger,
            "[%s] asset_tag=%s kind=%s recorder_error=%s",
            ReconcileEventType.RECORD_FAILED,
            failure.asset_tag,
            failure.kind,
            error,
            exc_info=error,
        )

    def log_batch_completed(
        self, outcomes: cabc.Sequence[ProcessingOutcome], duration: dt.timedelta
    ) -> None:
        """Log batch totals."""
        failed = sum(1 for outcome in outcomes if not outcome.succeeded)
        log_info(
            logger,
            "[%s] total=%d succeeded=%d failed=%d duration_seconds=%.3f",
            ReconcileEventType.BATCH_COMPLETED,
            len(outcomes),
            len(outcomes) - failed,
            failed,
            duration.total_seconds(),
        )

    def log_replay_completed(self, summary: ReplaySummary) -> None:
        """Log the result of a replay pass."""
        log_info(
            logger,
            "[%s] attempted=%d replayed=%d still_failing=%d",
            ReconcileEventType.REPLAY_COMPLETED,
            summary.attempted,
            len(summary.replayed_ids),
            len(summary.still_failing_ids),
        )

"""Reconciliation pipeline: per-event state machine, upsert and replay."""

from __future__ import annotations

from .config import ProcessorConfig
from .errors import EventFailure, FailureKind, RetryableEventError
from .failures import FailureRecorder, InMemoryFailureLog
from .locks import AssetLockRegistry
from .observability import ReconcileEventLogger, ReconcileEventType
from .processor import ProcessingOutcome, ReconciliationProcessor
from .replay import FailedEventReplayer, ReplaySummary
from .state import ProcessingState
from .storage import (
    FailedEvent,
    FailedEventRecord,
    FailedEventStore,
    ReplayState,
    init_failure_storage,
)
from .upsert import UpsertOperation, UpsertResult, bounded_call, upsert_ci

__all__ = [
    "AssetLockRegistry",
    "EventFailure",
    "FailedEvent",
    "FailedEventRecord",
    "FailedEventReplayer",
    "FailedEventStore",
    "FailureKind",
    "FailureRecorder",
    "InMemoryFailureLog",
    "ProcessingOutcome",
    "ProcessingState",
    "ProcessorConfig",
    "ReconcileEventLogger",
    "ReconcileEventType",
    "ReconciliationProcessor",
    "ReplayState",
    "ReplaySummary",
    "RetryableEventError",
    "UpsertOperation",
    "UpsertResult",
    "bounded_call",
    "init_failure_storage",
    "upsert_ci",
]

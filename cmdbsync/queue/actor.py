"""Dramatiq actors for queue-driven reconciliation.

``reconcile_event_job`` reconciles one event per message. Retryable failures
(the CMDB being unavailable or slow) raise :class:`RetryableEventError` so
Dramatiq's ``Retries`` middleware redelivers the message with backoff; the
retry policy lives in the actor options below. Other failures are recorded
for replay and the message is acknowledged. When retries run out,
``record_exhausted_event_job`` records the event for replay as well.

``replay_failed_events_job`` pushes pending failures from the durable store
back through the processor.

Every actor requires ``CMDBSYNC_DATABASE_URL``; a worker has no other place
to keep failures between invocations.

Usage
-----
Queue an event:

>>> reconcile_event_job.send(
...     {"resource_id": "A-1", "resource_type": "ec2", "action": "create"}
... )

Replay up to fifty stored failures:

>>> replay_failed_events_job.send(limit=50)

"""

from __future__ import annotations

import asyncio
import os
import threading
import typing as typ

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cmdbsync.api.factory import build_processor
from cmdbsync.logging import get_logger, log_warning
from cmdbsync.queue._broker import ensure_broker_configured
from cmdbsync.reconcile.errors import EventFailure, FailureKind, RetryableEventError
from cmdbsync.reconcile.replay import FailedEventReplayer
from cmdbsync.reconcile.state import ProcessingState
from cmdbsync.reconcile.storage import FailedEventStore, init_failure_storage

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from cmdbsync.reconcile.processor import ReconciliationProcessor

T = typ.TypeVar("T")
SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

logger = get_logger(__name__)

_MAX_RETRIES = 5
_MIN_BACKOFF_MS = 1_000
_MAX_BACKOFF_MS = 60_000

# Module-level cache for reusing engines across actor invocations
_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_CACHE_LOCK = threading.Lock()

ensure_broker_configured()


def _get_or_create_engine(database_url: str) -> AsyncEngine:
    """Return the cached engine for ``database_url``.

    Thread-safe: uses a lock to prevent race conditions in Dramatiq workers.
    """
    with _CACHE_LOCK:
        if database_url not in _ENGINE_CACHE:
            _ENGINE_CACHE[database_url] = create_async_engine(database_url)
        return _ENGINE_CACHE[database_url]


def _require_database_url(purpose: str) -> str:
    """Return ``CMDBSYNC_DATABASE_URL`` or fail naming ``purpose``.

    Actors run in short-lived worker invocations, so failures are only kept
    when they reach the durable store.
    """
    database_url = os.environ.get("CMDBSYNC_DATABASE_URL") or None
    if database_url is None:
        msg = f"CMDBSYNC_DATABASE_URL must be set to {purpose}"
        raise RuntimeError(msg)
    return database_url


def _should_retry(retries: int, exc: BaseException) -> bool:
    """Redeliver only retryable failures, up to ``_MAX_RETRIES`` times."""
    return retries < _MAX_RETRIES and isinstance(exc, RetryableEventError)


def _run_with_processor(
    database_url: str,
    async_fn: cabc.Callable[
        [ReconciliationProcessor, SessionFactory], cabc.Awaitable[T]
    ],
) -> T:
    """Run ``async_fn`` with a freshly built processor.

    Each actor call runs its own event loop, so the CMDB client is created
    per invocation and pooled database connections are released before the
    loop closes.
    """
    engine = _get_or_create_engine(database_url)

    async def run() -> T:
        await init_failure_storage(engine)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        processor = build_processor(session_factory)
        try:
            return await async_fn(processor, session_factory)
        finally:
            await processor.client.aclose()
            await engine.dispose()

    return asyncio.run(run())


@dramatiq.actor(
    max_retries=_MAX_RETRIES,
    min_backoff=_MIN_BACKOFF_MS,
    max_backoff=_MAX_BACKOFF_MS,
    retry_when=_should_retry,
    on_retry_exhausted="record_exhausted_event_job",
)
def reconcile_event_job(payload: dict[str, typ.Any]) -> dict[str, typ.Any]:
    """Reconcile one event delivered through the queue.

    Parameters
    ----------
    payload
        Decoded InfrastructureEvent body.

    Returns
    -------
    dict[str, Any]
        The outcome body, as returned by ``POST /events``.

    Raises
    ------
    RetryableEventError
        If the CMDB was unavailable; Dramatiq redelivers the message.
    RuntimeError
        If ``CMDBSYNC_DATABASE_URL`` is not configured.

    """
    database_url = _require_database_url("reconcile queued events")

    async def execute(
        processor: ReconciliationProcessor, _session_factory: SessionFactory
    ) -> dict[str, typ.Any]:
        outcome = await processor.process(payload, record_failures=False)
        failure = outcome.failure
        if failure is not None:
            if failure.retryable:
                raise RetryableEventError(failure)
            await processor.record_failure(failure)
        return outcome.to_dict()

    return _run_with_processor(database_url, execute)


def _exhausted_failure(
    payload: object, asset_tag: str | None, retries: int, max_retries: int
) -> EventFailure:
    """Classify a message Dramatiq stopped redelivering.

    ``retry_when`` only redelivers retryable errors, so a message that stops
    before its retry budget is spent failed with an unexpected error.
    """
    if retries >= max_retries:
        return EventFailure(
            kind=FailureKind.CMDB_UNAVAILABLE,
            stage=ProcessingState.TRANSFORMED,
            message=f"CMDB unavailable; gave up after {retries} retries",
            payload=payload,
            asset_tag=asset_tag,
        )
    return EventFailure(
        kind=FailureKind.INTERNAL,
        stage=ProcessingState.RECEIVED,
        message=f"unexpected error ended redelivery after {retries} retries",
        payload=payload,
        asset_tag=asset_tag,
    )


@dramatiq.actor(max_retries=0)
def record_exhausted_event_job(
    message_data: dict[str, typ.Any], retry_info: dict[str, typ.Any]
) -> None:
    """Record an event that ``reconcile_event_job`` stopped retrying.

    Dramatiq calls this with the original message data once redelivery ends,
    either because the retry budget ran out or because the job raised an
    error ``retry_when`` does not redeliver.

    Raises
    ------
    RuntimeError
        If ``CMDBSYNC_DATABASE_URL`` is not configured.

    """
    database_url = _require_database_url("record exhausted events")
    args = message_data.get("args") or [None]
    payload = args[0]
    asset_tag = None
    if isinstance(payload, dict):
        resource_id = payload.get("resource_id")
        asset_tag = resource_id.strip() if isinstance(resource_id, str) else None
    retries = int(retry_info.get("retries") or 0)
    max_retries = int(retry_info.get("max_retries") or _MAX_RETRIES)
    failure = _exhausted_failure(payload, asset_tag, retries, max_retries)
    log_warning(
        logger,
        "Stopped redelivering asset_tag=%s after %s retries (%s)",
        asset_tag,
        retries,
        failure.kind,
    )

    async def execute(
        processor: ReconciliationProcessor, _session_factory: SessionFactory
    ) -> None:
        await processor.record_failure(failure)

    _run_with_processor(database_url, execute)


@dramatiq.actor(max_retries=0)
def replay_failed_events_job(limit: int | None = None) -> dict[str, typ.Any]:
    """Replay pending failures from the durable store.

    Parameters
    ----------
    limit
        Maximum number of pending failures to replay, oldest first.

    Returns
    -------
    dict[str, Any]
        Counts and ids from the resulting :class:`ReplaySummary`.

    Raises
    ------
    RuntimeError
        If ``CMDBSYNC_DATABASE_URL`` is not configured.

    """
    database_url = _require_database_url("replay failed events")

    async def execute(
        processor: ReconciliationProcessor, session_factory: SessionFactory
    ) -> dict[str, typ.Any]:
        store = FailedEventStore(session_factory)
        summary = await FailedEventReplayer(store, processor).replay_pending(limit)
        return {
            "attempted": summary.attempted,
            "replayed_ids": list(summary.replayed_ids),
            "still_failing_ids": list(summary.still_failing_ids),
        }

    return _run_with_processor(database_url, execute)

"""Reconciliation processor: validate → transform → upsert, one event at a time.

Each event moves through ``received → validated → transformed → upserted →
done``; any step can end it in ``failed``. Failures are returned as
:class:`EventFailure` values on the outcome and recorded for replay. They
never propagate into other events, and the processor never retries on its
own: redelivery belongs to whatever queue fed the event in.

Usage
-----
>>> import asyncio
>>> from cmdbsync.cmdb import InMemoryCMDBClient
>>> processor = ReconciliationProcessor(InMemoryCMDBClient())
>>> outcome = asyncio.run(
...     processor.process(
...         {"resource_id": "A-1", "resource_type": "ec2", "action": "create"}
...     )
... )
>>> outcome.state, outcome.operation
(<ProcessingState.DONE: 'done'>, <UpsertOperation.CREATED: 'created'>)

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import time
import typing as typ

from cmdbsync.cmdb.errors import CMDBConflictError, CMDBUnavailableError
from cmdbsync.cmdb.models import ci_to_dict
from cmdbsync.events.errors import EventValidationError
from cmdbsync.events.validation import decode_event
from cmdbsync.logging import get_logger, log_exception
from cmdbsync.reconcile.config import ProcessorConfig
from cmdbsync.reconcile.errors import EventFailure, FailureKind
from cmdbsync.reconcile.failures import InMemoryFailureLog
from cmdbsync.reconcile.locks import AssetLockRegistry
from cmdbsync.reconcile.observability import ReconcileEventLogger
from cmdbsync.reconcile.state import ProcessingState
from cmdbsync.reconcile.upsert import upsert_ci
from cmdbsync.transform.errors import TransformError
from cmdbsync.transform.transformer import CITransformer

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from cmdbsync.cmdb.models import ConfigurationItem
    from cmdbsync.cmdb.protocol import CMDBClient
    from cmdbsync.events.validation import FieldProblem
    from cmdbsync.reconcile.failures import FailureRecorder
    from cmdbsync.reconcile.upsert import UpsertOperation

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class ProcessingOutcome:
    """Result of reconciling one event.

    Attributes
    ----------
    states
        Every state the event visited, in order; the last one is terminal.
    ci
        The CI as stored by the CMDB, on success.
    operation
        Whether the CI was created or updated, on success.
    failure
        Failure details when the event ended in ``failed``.

    """

    states: tuple[ProcessingState, ...]
    ci: ConfigurationItem | None = None
    operation: UpsertOperation | None = None
    failure: EventFailure | None = None

    @property
    def state(self) -> ProcessingState:
        """Return the terminal state."""
        return self.states[-1]

    @property
    def succeeded(self) -> bool:
        """Return True when the event reached ``done``."""
        return self.failure is None

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-compatible body describing the outcome."""
        if self.failure is not None:
            return {"state": str(self.state), **self.failure.to_dict()}
        return {
            "state": str(self.state),
            "operation": str(self.operation),
            "ci": ci_to_dict(self.ci) if self.ci is not None else None,
        }


@dc.dataclass(slots=True)
class _Trail:
    """Mutable state history for one in-flight event."""

    payload: object
    states: list[ProcessingState] = dc.field(
        default_factory=lambda: [ProcessingState.RECEIVED]
    )
    asset_tag: str | None = None

    def advance(self, state: ProcessingState) -> None:
        self.states.append(state)

    @property
    def current(self) -> ProcessingState:
        return self.states[-1]


class _EventFailed(Exception):  # noqa: N818 - internal control flow
    """Carries an EventFailure out of a pipeline step."""

    def __init__(self, failure: EventFailure) -> None:
        self.failure = failure
        super().__init__(failure.message)


class ReconciliationProcessor:
    """Keep the CMDB consistent with a stream of infrastructure events.

    Parameters
    ----------
    client
        CMDB collaborator, constructed and owned by the caller.
    config
        Timeouts, batch concurrency and discovery source.
    transformer
        Event to CI mapper; built from ``config`` when omitted.
    recorder
        Destination for failed events; an :class:`InMemoryFailureLog` when
        omitted.
    locks
        Per-asset-tag lock registry; share one between processors that must
        serialise writes on the same event loop.
    event_logger
        Structured log emitter.

    """

    def __init__(  # noqa: PLR0913 - collaborators are injected explicitly
        self,
        client: CMDBClient,
        *,
        config: ProcessorConfig | None = None,
        transformer: CITransformer | None = None,
        recorder: FailureRecorder | None = None,
        locks: AssetLockRegistry | None = None,
        event_logger: ReconcileEventLogger | None = None,
    ) -> None:
        """Wire the processor to its collaborators."""
        self._client = client
        self._config = config or ProcessorConfig()
        self._transformer = transformer or CITransformer(
            discovery_source=self._config.discovery_source
        )
        self._recorder: FailureRecorder = recorder or InMemoryFailureLog()
        self._locks = locks or AssetLockRegistry()
        self._event_logger = event_logger or ReconcileEventLogger()

    @property
    def config(self) -> ProcessorConfig:
        """Read-only access to the processor configuration."""
        return self._config

    @property
    def client(self) -> CMDBClient:
        """Return the CMDB client."""
        return self._client

    @property
    def recorder(self) -> FailureRecorder:
        """Return the failure recorder."""
        return self._recorder

    async def process(
        self, payload: object, *, record_failures: bool = True
    ) -> ProcessingOutcome:
        """Reconcile one inbound event payload.

        Parameters
        ----------
        payload
            Decoded JSON body of an InfrastructureEvent.
        record_failures
            Write failures to the recorder. Replays and queue workers that
            manage redelivery themselves turn this off.

        Returns
        -------
        ProcessingOutcome
            The visited states plus either the stored CI or the failure.

        """
        started = time.perf_counter()
        trail = _Trail(payload=payload)
        try:
            result = await self._run_pipeline(trail)
        except _EventFailed as failed:
            return await self._finish_failed(
                trail, failed.failure, record_failures=record_failures
            )
        except Exception as exc:  # noqa: BLE001 - contain defects to this event
            log_exception(
                logger,
                f"Unexpected error reconciling asset_tag={trail.asset_tag}",
                exc,
            )
            failure = self._failure(
                trail, FailureKind.INTERNAL, f"unexpected error: {exc!r}"
            )
            return await self._finish_failed(
                trail, failure, record_failures=record_failures
            )

        elapsed = time.perf_counter() - started
        self._event_logger.log_event_processed(result, dt.timedelta(seconds=elapsed))
        return result

    async def process_batch(
        self, payloads: cabc.Sequence[object]
    ) -> list[ProcessingOutcome]:
        """Reconcile ``payloads`` concurrently, returning outcomes in order.

        Concurrency is bounded by ``config.max_concurrency``. Events for the
        same asset tag are still serialised by the lock registry.
        """
        started = time.perf_counter()
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def bounded(payload: object) -> ProcessingOutcome:
            async with semaphore:
                return await self.process(payload)

        gathered = await asyncio.gather(
            *(bounded(payload) for payload in payloads), return_exceptions=True
        )
        outcomes = [
            await self._outcome_from_gathered(payload, result)
            for payload, result in zip(payloads, gathered, strict=True)
        ]
        self._event_logger.log_batch_completed(
            outcomes, dt.timedelta(seconds=time.perf_counter() - started)
        )
        return outcomes

    async def record_failure(self, failure: EventFailure) -> None:
        """Write ``failure`` to the recorder without letting recorder errors escape."""
        try:
            await self._recorder.record(failure)
        except Exception as exc:  # noqa: BLE001 - a broken recorder must not fail the event
            self._event_logger.log_record_failed(failure, exc)

    async def _run_pipeline(self, trail: _Trail) -> ProcessingOutcome:
        try:
            event = decode_event(trail.payload)
        except EventValidationError as exc:
            raise _EventFailed(
                self._failure(
                    trail, FailureKind.VALIDATION, str(exc), problems=exc.problems
                )
            ) from exc
        trail.advance(ProcessingState.VALIDATED)

        try:
            ci = self._transformer.transform(event)
        except TransformError as exc:
            raise _EventFailed(
                self._failure(trail, FailureKind.TRANSFORM, str(exc))
            ) from exc
        trail.asset_tag = ci.asset_tag
        trail.advance(ProcessingState.TRANSFORMED)

        try:
            async with self._locks.hold(ci.asset_tag):
                upserted = await upsert_ci(
                    self._client, ci, timeout_s=self._config.call_timeout_s
                )
        except CMDBUnavailableError as exc:
            raise _EventFailed(
                self._failure(trail, FailureKind.CMDB_UNAVAILABLE, str(exc))
            ) from exc
        except CMDBConflictError as exc:
            raise _EventFailed(
                self._failure(trail, FailureKind.CMDB_CONFLICT, str(exc))
            ) from exc
        trail.advance(ProcessingState.UPSERTED)
        trail.advance(ProcessingState.DONE)

        return ProcessingOutcome(
            states=tuple(trail.states),
            ci=upserted.ci,
            operation=upserted.operation,
        )

    def _failure(
        self,
        trail: _Trail,
        kind: FailureKind,
        message: str,
        *,
        problems: tuple[FieldProblem, ...] = (),
    ) -> EventFailure:
        return EventFailure(
            kind=kind,
            stage=trail.current,
            message=message,
            payload=trail.payload,
            asset_tag=trail.asset_tag,
            problems=problems,
        )

    async def _finish_failed(
        self, trail: _Trail, failure: EventFailure, *, record_failures: bool
    ) -> ProcessingOutcome:
        trail.advance(ProcessingState.FAILED)
        self._event_logger.log_event_failed(failure)
        if record_failures:
            await self.record_failure(failure)
        return ProcessingOutcome(states=tuple(trail.states), failure=failure)

    async def _outcome_from_gathered(
        self, payload: object, result: ProcessingOutcome | BaseException
    ) -> ProcessingOutcome:
        if isinstance(result, ProcessingOutcome):
            return result
        if not isinstance(result, Exception):
            # Re-raise system-level exceptions (e.g. KeyboardInterrupt)
            raise result
        trail = _Trail(payload=payload)
        failure = self._failure(
            trail, FailureKind.INTERNAL, f"unexpected error: {result!r}"
        )
        return await self._finish_failed(trail, failure, record_failures=True)

"""Durable store for failed events awaiting replay."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import typing as typ

import msgspec
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    select,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from cmdbsync.common.time import utcnow

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from cmdbsync.reconcile.errors import EventFailure


class ReplayState(enum.IntEnum):
    """Replay lifecycle of a stored failure."""

    PENDING = 0
    REPLAYED = 1


class Base(DeclarativeBase):
    """Base declarative class for failure storage."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            msg = "failed_events timestamps must be timezone aware"
            raise ValueError(msg)
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class FailedEvent(Base):
    """A failed event and the error that stopped it."""

    __tablename__ = "failed_events"
    __table_args__ = (
        Index("ix_failed_events_replay_state", "replay_state"),
        Index("ix_failed_events_asset_tag", "asset_tag"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    asset_tag: Mapped[str | None] = mapped_column(String(255), default=None)
    failure_kind: Mapped[str] = mapped_column(String(32))
    stage: Mapped[str] = mapped_column(String(32))
    message: Mapped[str] = mapped_column(Text())
    retryable: Mapped[bool] = mapped_column(Boolean, default=False)
    payload: Mapped[typ.Any] = mapped_column(JSON)
    failed_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    attempts: Mapped[int] = mapped_column(Integer, default=1)
    replay_state: Mapped[int] = mapped_column(
        Integer, default=ReplayState.PENDING.value
    )
    replayed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )


@dc.dataclass(frozen=True, slots=True)
class FailedEventRecord:
    """Detached snapshot of a :class:`FailedEvent` row."""

    id: int
    asset_tag: str | None
    failure_kind: str
    stage: str
    message: str
    retryable: bool
    payload: typ.Any
    failed_at: dt.datetime
    attempts: int
    replay_state: ReplayState
    replayed_at: dt.datetime | None

    @classmethod
    def from_row(cls, row: FailedEvent) -> FailedEventRecord:
        """Copy the persisted columns of ``row``."""
        return cls(
            id=row.id,
            asset_tag=row.asset_tag,
            failure_kind=row.failure_kind,
            stage=row.stage,
            message=row.message,
            retryable=row.retryable,
            payload=row.payload,
            failed_at=row.failed_at,
            attempts=row.attempts,
            replay_state=ReplayState(row.replay_state),
            replayed_at=row.replayed_at,
        )


def _json_payload(payload: object) -> typ.Any:  # noqa: ANN401 - arbitrary JSON
    """Return a JSON-safe copy of ``payload``, stringifying exotic values."""
    return msgspec.to_builtins(payload, enc_hook=str)


class FailedEventStore:
    """SQLAlchemy-backed :class:`FailureRecorder` with replay bookkeeping."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for every operation."""
        self._session_factory = session_factory

    async def record(self, failure: EventFailure) -> None:
        """Insert a pending row for ``failure``."""
        async with self._session_factory() as session, session.begin():
            session.add(
                FailedEvent(
                    asset_tag=failure.asset_tag,
                    failure_kind=str(failure.kind),
                    stage=str(failure.stage),
                    message=failure.message,
                    retryable=failure.retryable,
                    payload=_json_payload(failure.payload),
                )
            )

    async def list_pending(self, limit: int | None = None) -> list[FailedEventRecord]:
        """Return pending failures, oldest first."""
        stmt = (
            select(FailedEvent)
            .where(FailedEvent.replay_state == ReplayState.PENDING.value)
            .order_by(FailedEvent.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            rows = await session.scalars(stmt)
            return [FailedEventRecord.from_row(row) for row in rows]

    async def mark_replayed(self, failed_event_id: int) -> None:
        """Flag a stored failure as successfully replayed."""
        async with self._session_factory() as session, session.begin():
            row = await session.get(FailedEvent, failed_event_id)
            if row is None:
                return
            row.replay_state = ReplayState.REPLAYED.value
            row.replayed_at = utcnow()

    async def mark_attempt_failed(
        self, failed_event_id: int, failure: EventFailure
    ) -> None:
        """Record another failed replay attempt, keeping the row pending."""
        async with self._session_factory() as session, session.begin():
            row = await session.get(FailedEvent, failed_event_id)
            if row is None:
                return
            row.attempts += 1
            row.failure_kind = str(failure.kind)
            row.stage = str(failure.stage)
            row.message = failure.message
            row.retryable = failure.retryable
            row.asset_tag = failure.asset_tag or row.asset_tag


async def init_failure_storage(engine: AsyncEngine) -> None:
    """Create the failure tables if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

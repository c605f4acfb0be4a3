"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import dramatiq
import pytest
import pytest_asyncio
from dramatiq.brokers.stub import StubBroker
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from cmdbsync.cmdb import InMemoryCMDBClient
from cmdbsync.reconcile import (
    InMemoryFailureLog,
    ProcessorConfig,
    ReconciliationProcessor,
    init_failure_storage,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession

# Actors bind to the global broker when their module is imported.
dramatiq.set_broker(StubBroker())


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cmdbsync_test.db'}")
    try:
        await init_failure_storage(engine)
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def cmdb() -> InMemoryCMDBClient:
    """Return an empty in-memory CMDB."""
    return InMemoryCMDBClient()


@pytest.fixture
def failure_log() -> InMemoryFailureLog:
    """Return an empty in-memory failure recorder."""
    return InMemoryFailureLog()


@pytest.fixture
def processor(
    cmdb: InMemoryCMDBClient, failure_log: InMemoryFailureLog
) -> ReconciliationProcessor:
    """Return a processor wired to the in-memory CMDB and failure log."""
    return ReconciliationProcessor(
        cmdb,
        config=ProcessorConfig(call_timeout_s=1.0, max_concurrency=4),
        recorder=failure_log,
    )

"""Factory for building a ReconciliationProcessor from environment configuration.

The HTTP runtime and the Dramatiq actors share this assembly so both paths
reconcile events with identical settings.

Usage
-----
Build a processor with the durable failure store::

    from cmdbsync.api.factory import build_processor

    processor = build_processor(session_factory)

"""

from __future__ import annotations

import typing as typ

from cmdbsync.cmdb.factory import create_cmdb_client
from cmdbsync.reconcile.config import ProcessorConfig
from cmdbsync.reconcile.failures import InMemoryFailureLog
from cmdbsync.reconcile.observability import ReconcileEventLogger
from cmdbsync.reconcile.processor import ReconciliationProcessor
from cmdbsync.reconcile.storage import FailedEventStore

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from cmdbsync.cmdb.protocol import CMDBClient
    from cmdbsync.reconcile.failures import FailureRecorder

__all__ = ["build_processor"]


def build_processor(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    client: CMDBClient | None = None,
) -> ReconciliationProcessor:
    """Build a ``ReconciliationProcessor`` from environment configuration.

    Parameters
    ----------
    session_factory
        Async session factory for the failure store. When ``None``, failures
        are kept in an in-process :class:`InMemoryFailureLog` bounded by
        ``ProcessorConfig.failure_log_max``.
    client
        CMDB client to use; created with :func:`create_cmdb_client` when
        omitted. The caller owns it and must ``aclose()`` it.

    Returns
    -------
    ReconciliationProcessor
        Processor ready to reconcile events.

    """
    config = ProcessorConfig.from_env()
    recorder: FailureRecorder = (
        FailedEventStore(session_factory)
        if session_factory is not None
        else InMemoryFailureLog(config.failure_log_max)
    )
    return ReconciliationProcessor(
        client if client is not None else create_cmdb_client(),
        config=config,
        recorder=recorder,
        event_logger=ReconcileEventLogger(),
    )

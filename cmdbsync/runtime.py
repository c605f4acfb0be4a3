"""cmdbsync runtime entrypoint for container deployments.

This module provides the ASGI application factory used by Granian. It
assembles the processor, signature verifier and failure store from the
environment and delegates to :func:`cmdbsync.api.app.create_app`.

When ``CMDBSYNC_WEBHOOK_SECRET`` is unset the service starts in health-only
mode and ``/ready`` reports unavailable. When ``CMDBSYNC_DATABASE_URL`` is
set, failed events are persisted to the ``failed_events`` table; otherwise
they are kept in memory.

Configuration is driven by environment variables:

- ``CMDBSYNC_HOST``: Bind address (default ``0.0.0.0``)
- ``CMDBSYNC_PORT``: Listen port (default ``8080``)
- ``CMDBSYNC_LOG_LEVEL``: Log level (default ``INFO``)
- ``CMDBSYNC_DATABASE_URL``: Failure store URL (optional)
- ``CMDBSYNC_WEBHOOK_SECRET``: Shared webhook secret (optional; enables the
  event endpoints)

Run the service directly with ``python -m cmdbsync.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from cmdbsync.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

    from cmdbsync.api.middleware import LifespanHook

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid CMDBSYNC_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    Raises
    ------
    CMDBConfigError
        If the CMDB backend is misconfigured while event ingestion is on.
    ValueError
        If processor or signature settings are malformed.

    """
    from cmdbsync.api.app import AppDependencies
    from cmdbsync.api.app import create_app as _create_api_app

    if not os.environ.get("CMDBSYNC_WEBHOOK_SECRET"):
        log_warning(
            logger,
            "CMDBSYNC_WEBHOOK_SECRET is not set; event endpoints are disabled",
        )
        return _create_api_app()

    from cmdbsync.api.factory import build_processor
    from cmdbsync.api.middleware import LifespanManager
    from cmdbsync.api.signature import SignatureConfig, SignatureVerifier
    from cmdbsync.cmdb.factory import create_cmdb_client

    client = create_cmdb_client()
    on_startup: list[LifespanHook] = []
    on_shutdown: list[LifespanHook] = [client.aclose]

    session_factory = None
    database_url = os.environ.get("CMDBSYNC_DATABASE_URL")
    if database_url:
        from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

        from cmdbsync.reconcile.storage import init_failure_storage

        engine = create_async_engine(database_url)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)

        async def init_storage() -> None:
            await init_failure_storage(engine)

        on_startup.append(init_storage)
        on_shutdown.append(engine.dispose)
    else:
        log_info(
            logger, "CMDBSYNC_DATABASE_URL not set; failures kept in bounded memory"
        )

    deps = AppDependencies(
        processor=build_processor(session_factory, client=client),
        verifier=SignatureVerifier(SignatureConfig.from_env()),
        lifespan=LifespanManager(on_startup=on_startup, on_shutdown=on_shutdown),
    )
    return _create_api_app(deps)


def main() -> None:
    """Start the cmdbsync runtime server using Granian.

    Reads ``CMDBSYNC_HOST``, ``CMDBSYNC_PORT``, and ``CMDBSYNC_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("CMDBSYNC_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port_str = os.environ.get("CMDBSYNC_PORT", "8080")
    port = _parse_port(port_str)
    log_level_str = os.environ.get("CMDBSYNC_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid CMDBSYNC_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting cmdbsync runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "cmdbsync.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()

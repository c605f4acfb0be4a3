"""ASGI lifespan middleware for resources the application owns.

The runtime creates the CMDB client and the failure-store engine before the
server starts its event loop, so table creation and connection cleanup run
from the ASGI ``startup`` and ``shutdown`` lifespan events instead.

Usage
-----
Register the middleware when creating the Falcon app::

    lifespan = LifespanManager(
        on_startup=[lambda: init_failure_storage(engine)],
        on_shutdown=[client.aclose, engine.dispose],
    )
    app = falcon.asgi.App(middleware=[lifespan])

"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from cmdbsync.logging import get_logger, log_exception, log_info

__all__ = ["LifespanHook", "LifespanManager"]

logger = get_logger(__name__)

LifespanHook: typ.TypeAlias = cabc.Callable[[], cabc.Awaitable[None]]


class LifespanManager:
    """Falcon middleware running async hooks at ASGI startup and shutdown.

    Startup hooks run in order and the first failure aborts startup.
    Shutdown hooks all run even when one fails; the first error is re-raised
    once every hook has had its turn.

    Parameters
    ----------
    on_startup
        Hooks awaited when the server starts.
    on_shutdown
        Hooks awaited when the server stops.

    """

    def __init__(
        self,
        *,
        on_startup: cabc.Iterable[LifespanHook] = (),
        on_shutdown: cabc.Iterable[LifespanHook] = (),
    ) -> None:
        """Store the hooks."""
        self._on_startup = tuple(on_startup)
        self._on_shutdown = tuple(on_shutdown)

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Await every startup hook in order."""
        for hook in self._on_startup:
            await hook()
        log_info(logger, "Startup complete (%d hooks)", len(self._on_startup))

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Await every shutdown hook, re-raising the first failure."""
        first_error: Exception | None = None
        for hook in self._on_shutdown:
            try:
                await hook()
            except Exception as exc:  # noqa: BLE001 - remaining hooks must still run
                log_exception(logger, "Shutdown hook failed", exc)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error

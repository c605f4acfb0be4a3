"""Unit tests for cmdbsync.api.middleware.LifespanManager.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_middleware.py

"""

from __future__ import annotations

import falcon.asgi
import falcon.testing
import pytest

from cmdbsync.api.middleware import LifespanManager


class _Hooks:
    """Records hook invocations in order."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def hook(self, name: str, *, fail: bool = False):  # noqa: ANN201
        async def run() -> None:
            self.calls.append(name)
            if fail:
                msg = f"{name} failed"
                raise RuntimeError(msg)

        return run


class TestLifespanManager:
    """Startup and shutdown hook ordering."""

    @pytest.mark.asyncio
    async def test_startup_runs_hooks_in_order(self) -> None:
        """Startup hooks are awaited in registration order."""
        hooks = _Hooks()
        manager = LifespanManager(on_startup=[hooks.hook("a"), hooks.hook("b")])

        await manager.process_startup({}, {})

        assert hooks.calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_startup_failure_aborts(self) -> None:
        """A failing startup hook stops the remaining ones."""
        hooks = _Hooks()
        manager = LifespanManager(
            on_startup=[hooks.hook("a", fail=True), hooks.hook("b")]
        )

        with pytest.raises(RuntimeError, match="a failed"):
            await manager.process_startup({}, {})
        assert hooks.calls == ["a"]

    @pytest.mark.asyncio
    async def test_shutdown_runs_every_hook_and_reraises_first(self) -> None:
        """Every shutdown hook runs; the first error is re-raised."""
        hooks = _Hooks()
        manager = LifespanManager(
            on_shutdown=[
                hooks.hook("a", fail=True),
                hooks.hook("b", fail=True),
                hooks.hook("c"),
            ]
        )

        with pytest.raises(RuntimeError, match="a failed"):
            await manager.process_shutdown({}, {})
        assert hooks.calls == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_hooks_run_from_asgi_lifespan() -> None:
    """The conductor drives the lifespan events through the middleware."""
    hooks = _Hooks()
    manager = LifespanManager(
        on_startup=[hooks.hook("startup")], on_shutdown=[hooks.hook("shutdown")]
    )
    app = falcon.asgi.App(middleware=[manager])  # type: ignore[no-matching-overload]  # Falcon stubs

    async with falcon.testing.ASGIConductor(app):
        assert hooks.calls == ["startup"]

    assert hooks.calls == ["startup", "shutdown"]

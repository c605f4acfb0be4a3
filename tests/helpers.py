"""Shared test utilities."""

from __future__ import annotations

import asyncio
import typing as typ


T = typ.TypeVar("T")


def run_async(coro_func: typ.Callable[[], typ.Coroutine[typ.Any, typ.Any, T]]) -> T:
    """Execute an async callable within the test context."""
    return asyncio.run(coro_func())


def event_payload(
    resource_id: str = "A-1", action: str = "create", **overrides: object
) -> dict[str, object]:
    """Build an InfrastructureEvent payload with sensible defaults."""
    payload: dict[str, object] = {
        "resource_id": resource_id,
        "resource_type": "aws.ec2.instance",
        "action": action,
        "resource_name": f"web-{resource_id.lower()}",
        "environment": "prod",
        "organization": "acme",
    }
    payload.update(overrides)
    return payload


class FakeLogger:
    """Collects femtologging-style ``log`` calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        del stack_info
        self.calls.append((level, message, exc_info))
        return message

    def messages(self, level: str | None = None) -> list[str]:
        """Return logged messages, optionally filtered by level."""
        return [msg for lvl, msg, _ in self.calls if level is None or lvl == level]

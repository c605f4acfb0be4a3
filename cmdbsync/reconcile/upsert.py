"""Idempotent create-or-update of a CI keyed by asset tag."""

from __future__ import annotations

import asyncio
import dataclasses as dc
import enum
import typing as typ

import msgspec

from cmdbsync.cmdb.errors import CMDBUnavailableError

if typ.TYPE_CHECKING:
    from cmdbsync.cmdb.models import ConfigurationItem
    from cmdbsync.cmdb.protocol import CMDBClient


T = typ.TypeVar("T")


class UpsertOperation(enum.StrEnum):
    """Which CMDB verb an upsert ended up issuing."""

    CREATED = "created"
    UPDATED = "updated"


@dc.dataclass(frozen=True, slots=True)
class UpsertResult:
    """The stored CI and the verb used to store it."""

    ci: ConfigurationItem
    operation: UpsertOperation


async def bounded_call(
    operation: str, call: typ.Awaitable[T], *, timeout_s: float | None
) -> T:
    """Await ``call`` within ``timeout_s`` seconds.

    Raises
    ------
    CMDBUnavailableError
        If the call does not complete in time.

    """
    try:
        async with asyncio.timeout(timeout_s):
            return await call
    except TimeoutError as exc:
        raise CMDBUnavailableError.timeout(operation) from exc


async def upsert_ci(
    client: CMDBClient,
    ci: ConfigurationItem,
    *,
    timeout_s: float | None = None,
) -> UpsertResult:
    """Create or update ``ci`` in the CMDB.

    Issues ``find`` and then exactly one of ``create`` or ``update``. The
    sequence is not atomic; callers serialise it per asset tag.

    Parameters
    ----------
    client
        CMDB collaborator.
    ci
        Canonical CI produced by the transformer.
    timeout_s
        Bound applied to each individual CMDB call; ``None`` disables it.

    Raises
    ------
    CMDBUnavailableError
        On timeouts and transport failures (retryable).
    CMDBConflictError
        On responses the engine cannot trust (fatal for the event).

    """
    existing = await bounded_call(
        "find", client.find(ci.asset_tag), timeout_s=timeout_s
    )
    if existing is None:
        created = await bounded_call("create", client.create(ci), timeout_s=timeout_s)
        return UpsertResult(ci=created, operation=UpsertOperation.CREATED)

    desired = msgspec.structs.replace(ci, sys_id=existing.sys_id)
    updated = await bounded_call(
        "update", client.update(ci.asset_tag, desired), timeout_s=timeout_s
    )
    return UpsertResult(ci=updated, operation=UpsertOperation.UPDATED)

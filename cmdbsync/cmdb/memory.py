"""In-memory implementation of CMDBClient for testing and development."""

from __future__ import annotations

import asyncio
import dataclasses as dc
import itertools

import msgspec

from cmdbsync.cmdb.errors import CMDBConflictError
from cmdbsync.cmdb.models import ConfigurationItem


@dc.dataclass(slots=True)
class CallCounts:
    """Number of calls received per CMDB verb."""

    find: int = 0
    create: int = 0
    update: int = 0


class InMemoryCMDBClient:
    """Dict-backed CMDB keyed by asset tag.

    The client mirrors the table API's behaviour closely enough for the
    reconciliation engine: ``create`` refuses an asset tag that is already
    stored and ``update`` refuses one that is not, so a broken upsert shows up
    as a ``CMDBConflictError`` rather than silently succeeding.

    Parameters
    ----------
    latency_s
        Delay applied before every call, letting tests interleave concurrent
        events at each await point.
    failures
        Exceptions to raise for specific asset tags, on every call touching
        that tag.

    Examples
    --------
    >>> import asyncio
    >>> client = InMemoryCMDBClient()
    >>> asyncio.run(client.find("A-1")) is None
    True

    """

    def __init__(
        self,
        *,
        latency_s: float = 0.0,
        failures: dict[str, Exception] | None = None,
    ) -> None:
        """Initialise empty storage and call counters."""
        self._records: dict[str, ConfigurationItem] = {}
        self._latency_s = latency_s
        self._failures: dict[str, Exception] = dict(failures or {})
        self._sys_ids = itertools.count(1)
        self.calls = CallCounts()
        self.closed = False

    @property
    def records(self) -> dict[str, ConfigurationItem]:
        """Return a snapshot of stored CIs keyed by asset tag."""
        return dict(self._records)

    def fail_for(self, asset_tag: str, error: Exception) -> None:
        """Raise ``error`` on every subsequent call touching ``asset_tag``."""
        self._failures[asset_tag] = error

    def clear_failure(self, asset_tag: str) -> None:
        """Stop injecting failures for ``asset_tag``."""
        self._failures.pop(asset_tag, None)

    def seed(self, ci: ConfigurationItem) -> ConfigurationItem:
        """Store ``ci`` directly, bypassing call counters."""
        stored = self._with_sys_id(ci, self._records.get(ci.asset_tag))
        self._records[ci.asset_tag] = stored
        return stored

    async def find(self, asset_tag: str) -> ConfigurationItem | None:
        """Return the CI stored under ``asset_tag``, if any."""
        self.calls.find += 1
        await self._before_call(asset_tag)
        return self._records.get(asset_tag)

    async def create(self, ci: ConfigurationItem) -> ConfigurationItem:
        """Store a new CI, refusing duplicates."""
        self.calls.create += 1
        await self._before_call(ci.asset_tag)
        if ci.asset_tag in self._records:
            raise CMDBConflictError.already_exists(ci.asset_tag)
        stored = self._with_sys_id(ci, None)
        self._records[ci.asset_tag] = stored
        return stored

    async def update(
        self, asset_tag: str, ci: ConfigurationItem
    ) -> ConfigurationItem:
        """Replace the CI stored under ``asset_tag``."""
        self.calls.update += 1
        await self._before_call(asset_tag)
        existing = self._records.get(asset_tag)
        if existing is None:
            raise CMDBConflictError.not_found(asset_tag)
        stored = self._with_sys_id(
            msgspec.structs.replace(ci, asset_tag=asset_tag), existing
        )
        self._records[asset_tag] = stored
        return stored

    async def aclose(self) -> None:
        """Mark the client closed; no resources are held."""
        self.closed = True

    async def _before_call(self, asset_tag: str) -> None:
        await asyncio.sleep(self._latency_s)
        failure = self._failures.get(asset_tag)
        if failure is not None:
            raise failure

    def _with_sys_id(
        self, ci: ConfigurationItem, existing: ConfigurationItem | None
    ) -> ConfigurationItem:
        if existing is not None and existing.sys_id is not None:
            sys_id = existing.sys_id
        else:
            sys_id = f"mem-{next(self._sys_ids):06d}"
        return msgspec.structs.replace(ci, sys_id=sys_id)

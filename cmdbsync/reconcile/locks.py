"""Per-asset-tag mutual exclusion for the find→create/update sequence."""

from __future__ import annotations

import asyncio
import contextlib
import typing as typ


class AssetLockRegistry:
    """Hand out one ``asyncio.Lock`` per asset tag.

    Events for the same asset tag queue behind each other; events for
    different tags never contend. A tag's lock is dropped once its last
    holder or waiter leaves, so the registry does not grow with the number of
    tags ever seen.

    Locks are bound to the running event loop; share a registry only between
    coroutines on one loop.
    """

    def __init__(self) -> None:
        """Start with no tracked tags."""
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        """Return the number of asset tags currently held or awaited."""
        return len(self._locks)

    def locked(self, asset_tag: str) -> bool:
        """Return True when ``asset_tag`` is currently held."""
        lock = self._locks.get(asset_tag)
        return lock is not None and lock.locked()

    @contextlib.asynccontextmanager
    async def hold(self, asset_tag: str) -> typ.AsyncIterator[None]:
        """Hold the lock for ``asset_tag`` for the duration of the block."""
        lock = self._locks.setdefault(asset_tag, asyncio.Lock())
        self._users[asset_tag] = self._users.get(asset_tag, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._users[asset_tag] - 1
            if remaining:
                self._users[asset_tag] = remaining
            else:
                del self._users[asset_tag]
                del self._locks[asset_tag]

"""Unit tests for the per-asset-tag lock registry."""

from __future__ import annotations

import asyncio

import pytest

from cmdbsync.reconcile import AssetLockRegistry


@pytest.mark.asyncio
async def test_same_tag_is_serialised() -> None:
    """Holders of one asset tag never overlap."""
    locks = AssetLockRegistry()
    active = 0
    peak = 0

    async def worker() -> None:
        nonlocal active, peak
        async with locks.hold("A-1"):
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*(worker() for _ in range(5)))

    assert peak == 1, "expected holders of A-1 to run one at a time"


@pytest.mark.asyncio
async def test_distinct_tags_do_not_contend() -> None:
    """A held tag does not block a different tag."""
    locks = AssetLockRegistry()
    release = asyncio.Event()

    async def hold_a1() -> None:
        async with locks.hold("A-1"):
            await release.wait()

    holder = asyncio.create_task(hold_a1())
    await asyncio.sleep(0)
    assert locks.locked("A-1")

    async with asyncio.timeout(1):
        async with locks.hold("A-2"):
            assert locks.locked("A-1"), "A-1 stays held while A-2 proceeds"

    release.set()
    await holder


@pytest.mark.asyncio
async def test_registry_forgets_released_tags() -> None:
    """Locks are dropped once their last user leaves."""
    locks = AssetLockRegistry()
    async with locks.hold("A-1"):
        assert len(locks) == 1
    assert len(locks) == 0
    assert not locks.locked("A-1")


@pytest.mark.asyncio
async def test_lock_released_on_error() -> None:
    """An exception inside the block still releases the tag."""
    locks = AssetLockRegistry()
    with pytest.raises(RuntimeError):
        async with locks.hold("A-1"):
            raise RuntimeError
    assert len(locks) == 0

"""Tests for the side-effect registry."""

import asyncio
import logging

import pytest

from osubot.core.tasks import SideEffectRegistry


@pytest.mark.asyncio
async def test_run_waits_for_all_effects():
    registry = SideEffectRegistry()
    done = []

    async def effect(value):
        await asyncio.sleep(0)
        done.append(value)

    await registry.run(effect(1), effect(2), name="test")

    assert sorted(done) == [1, 2]
    assert registry.pending == 0


@pytest.mark.asyncio
async def test_run_without_effects_is_a_no_op():
    registry = SideEffectRegistry()

    await registry.run(name="noop")

    assert registry.pending == 0


@pytest.mark.asyncio
async def test_failing_effect_does_not_abandon_siblings(caplog):
    registry = SideEffectRegistry()
    done = []

    async def boom():
        raise RuntimeError("boom")

    async def ok():
        await asyncio.sleep(0)
        done.append("ok")

    with caplog.at_level(logging.WARNING, logger="osubot.core.tasks"):
        await registry.run(boom(), ok(), name="mixed")

    assert done == ["ok"]
    assert "Side effect mixed failed" in caplog.text


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_effect():
    registry = SideEffectRegistry()
    release = asyncio.Event()
    started = asyncio.Event()
    done = []

    async def slow():
        started.set()
        await release.wait()
        done.append(True)

    caller = asyncio.create_task(registry.run(slow(), name="slow"))
    await started.wait()
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    assert registry.pending == 1
    release.set()
    await registry.drain(timeout=1.0)

    assert done == [True]


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    registry = SideEffectRegistry(max_concurrency=2)
    running = 0
    peak = 0

    async def effect():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    for index in range(6):
        registry.spawn(effect(), name=f"effect-{index}")
    await registry.drain(timeout=1.0)

    assert peak == 2


@pytest.mark.asyncio
async def test_drain_timeout_warns(caplog):
    registry = SideEffectRegistry()
    never = asyncio.Event()
    registry.spawn(never.wait(), name="stuck")

    with caplog.at_level(logging.WARNING, logger="osubot.core.tasks"):
        await registry.drain(timeout=0.01)

    assert "still pending" in caplog.text
    never.set()
    await registry.drain(timeout=1.0)


def test_rejects_non_positive_concurrency():
    with pytest.raises(ValueError):
        SideEffectRegistry(max_concurrency=0)

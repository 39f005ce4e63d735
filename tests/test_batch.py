"""Tests for the fail-fast fan-out barrier."""
import asyncio

import pytest

from adblock_sync.batch import DONE, FAILED, SKIPPED, run_batch


def _call(value, started, fail=False):
    async def call():
        started.append(value)
        await asyncio.sleep(0)
        if fail:
            raise RuntimeError(f"boom {value}")
        return value
    return call


@pytest.mark.asyncio
async def test_all_calls_complete_in_submission_order():
    started = []
    batch = await run_batch([_call(i, started) for i in range(5)], max_concurrency=3)
    assert batch.all_ok
    assert batch.results() == [0, 1, 2, 3, 4]
    assert batch.failed == [] and batch.skipped == []


@pytest.mark.asyncio
async def test_empty_batch():
    batch = await run_batch([], max_concurrency=4)
    assert batch.all_ok
    assert batch.results() == []
    batch.raise_first_error()


@pytest.mark.asyncio
async def test_first_failure_skips_pending_calls():
    started = []
    calls = [_call(0, started), _call(1, started, fail=True), _call(2, started)]
    batch = await run_batch(calls, max_concurrency=1)

    assert [o.status for o in batch.outcomes] == [DONE, FAILED, SKIPPED]
    assert started == [0, 1]
    assert batch.results() == [0]
    with pytest.raises(RuntimeError, match="boom 1"):
        batch.raise_first_error()


@pytest.mark.asyncio
async def test_concurrency_limit_is_respected():
    in_flight = 0
    peak = 0

    async def call():
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1

    batch = await run_batch([call for _ in range(10)], max_concurrency=3)
    assert batch.all_ok
    assert peak == 3


@pytest.mark.asyncio
async def test_in_flight_calls_finish_after_a_failure():
    finished = []

    async def slow(value):
        await asyncio.sleep(0.05)
        finished.append(value)
        return value

    async def fail():
        raise RuntimeError("boom")

    calls = [lambda: slow(0), fail, lambda: slow(2), lambda: slow(3)]
    batch = await run_batch(calls, max_concurrency=3)

    assert [o.status for o in batch.outcomes] == [DONE, FAILED, DONE, SKIPPED]
    assert sorted(finished) == [0, 2]
    assert batch.results() == [0, 2]

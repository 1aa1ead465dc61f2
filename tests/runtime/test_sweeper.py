from __future__ import annotations

import asyncio

from quotashield.runtime.sweeper import PeriodicSweeper


def run_async(coro):
    return asyncio.run(coro)


def test_does_not_start_without_running_loop():
    sweeper = PeriodicSweeper(lambda: 0, interval_s=1.0, name="test")
    assert sweeper.ensure_started() is False
    assert not sweeper.is_running


def test_runs_callback_until_stopped():
    async def scenario() -> None:
        calls = 0

        def callback() -> int:
            nonlocal calls
            calls += 1
            return 1

        sweeper = PeriodicSweeper(callback, interval_s=0.01, name="test")
        assert sweeper.ensure_started() is True
        assert sweeper.ensure_started() is False
        await asyncio.sleep(0.05)
        await sweeper.stop()

        seen = calls
        assert seen >= 1
        assert not sweeper.is_running
        await asyncio.sleep(0.03)
        assert calls == seen

    run_async(scenario())


def test_callback_failure_does_not_stop_loop():
    async def scenario() -> None:
        calls = 0

        def callback() -> int:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("sweep exploded")
            return 0

        sweeper = PeriodicSweeper(callback, interval_s=0.01, name="test")
        sweeper.ensure_started()
        await asyncio.sleep(0.06)
        assert sweeper.is_running
        await sweeper.stop()
        assert calls >= 2

    run_async(scenario())


def test_restarts_after_stop():
    async def scenario() -> None:
        calls = 0

        def callback() -> int:
            nonlocal calls
            calls += 1
            return 0

        sweeper = PeriodicSweeper(callback, interval_s=0.01, name="test")
        sweeper.ensure_started()
        await sweeper.stop()
        seen = calls

        assert sweeper.ensure_started() is True
        assert sweeper.is_running
        await asyncio.sleep(0.05)
        await sweeper.stop()
        assert calls > seen

    run_async(scenario())


def test_restarts_on_a_new_event_loop():
    sweeper = PeriodicSweeper(lambda: 0, interval_s=0.01, name="test")

    async def start_and_leave() -> None:
        assert sweeper.ensure_started() is True

    async def start_again() -> bool:
        started = sweeper.ensure_started()
        running = sweeper.is_running
        await sweeper.stop()
        return started and running

    run_async(start_and_leave())
    assert run_async(start_again()) is True

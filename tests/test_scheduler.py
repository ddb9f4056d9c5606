import asyncio

import pytest

from scheduler import PeriodicTask, ViewScope


def test_periodic_task_repeats_until_cancelled():
    calls = []

    async def tick():
        calls.append(1)

    async def run():
        task = PeriodicTask("tick", tick, 0.01).start()
        await asyncio.sleep(0.055)
        task.cancel()
        # Let a fire scheduled just before the cancel start
        await asyncio.sleep(0)
        seen = len(calls)
        await asyncio.sleep(0.03)
        return seen

    seen = asyncio.run(run())
    assert seen >= 3
    assert len(calls) == seen


def test_failing_run_does_not_stop_the_loop():
    calls = []

    async def flaky():
        calls.append(1)
        raise RuntimeError("boom")

    async def run():
        task = PeriodicTask("flaky", flaky, 0.01).start()
        await asyncio.sleep(0.035)
        task.cancel()

    asyncio.run(run())
    assert len(calls) >= 2


def test_delayed_start():
    calls = []

    async def tick():
        calls.append(1)

    async def run():
        task = PeriodicTask("later", tick, 10, run_immediately=False).start()
        await asyncio.sleep(0.02)
        task.cancel()

    asyncio.run(run())
    assert calls == []


def test_scope_close_cancels_tasks_and_guards_updates():
    updates = []

    async def noop():
        pass

    async def run():
        async with ViewScope("market") as scope:
            task = scope.every(0.01, noop)
            assert scope.guard(updates.append, "fresh")
        assert not task.running
        assert not scope.guard(updates.append, "late")
        with pytest.raises(RuntimeError):
            scope.every(0.01, noop)

    asyncio.run(run())
    assert updates == ["fresh"]

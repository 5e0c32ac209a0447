import asyncio

import pytest

from tmsim.scheduler import Debouncer, Scheduler


class Counter:
    def __init__(self, budget: int | None = None) -> None:
        self.budget = budget
        self.ticks = 0
        self.halts = 0

    def tick(self) -> bool:
        if self.budget is not None and self.ticks >= self.budget:
            return False
        self.ticks += 1
        return True

    def halt(self) -> None:
        self.halts += 1


def test_runs_until_the_tick_reports_a_halt():
    counter = Counter(budget=3)

    async def main():
        scheduler = Scheduler(counter.tick, counter.halt, delay=0)
        scheduler.start()
        assert scheduler.running
        await scheduler.join()
        assert not scheduler.running

    asyncio.run(main())
    assert counter.ticks == 3
    assert counter.halts == 1


def test_limit_ends_the_loop_quietly():
    counter = Counter()

    async def main():
        scheduler = Scheduler(counter.tick, counter.halt, delay=0)
        scheduler.start(limit=5)
        await scheduler.join()
        assert not scheduler.running

    asyncio.run(main())
    assert counter.ticks == 5
    assert counter.halts == 0


def test_pause_cancels_pending_ticks():
    counter = Counter()

    async def main():
        scheduler = Scheduler(counter.tick, counter.halt, delay=1000)
        scheduler.start()
        await asyncio.sleep(0)
        scheduler.pause()
        assert not scheduler.running
        await asyncio.sleep(0.01)

    asyncio.run(main())
    assert counter.ticks == 0
    assert counter.halts == 0


def test_pause_is_idempotent():
    scheduler = Scheduler(Counter().tick)
    scheduler.pause()
    scheduler.pause()
    assert not scheduler.running


def test_restart_replaces_the_running_loop():
    counter = Counter()

    async def main():
        scheduler = Scheduler(counter.tick, counter.halt, delay=1000)
        scheduler.start()
        first = scheduler._task
        scheduler.start(0, limit=2)
        assert scheduler._task is not first
        assert scheduler.delay == 0
        await asyncio.sleep(0)
        assert first is not None and first.cancelled()
        await scheduler.join()

    asyncio.run(main())
    assert counter.ticks == 2


def test_changing_the_delay_restarts_a_running_loop():
    counter = Counter(budget=1)

    async def main():
        scheduler = Scheduler(counter.tick, counter.halt, delay=1000)
        scheduler.start()
        scheduler.delay = 0
        await scheduler.join()

    asyncio.run(main())
    assert counter.ticks == 1
    assert counter.halts == 1


def test_changing_the_delay_while_paused_does_not_start():
    scheduler = Scheduler(Counter().tick)
    scheduler.delay = 10
    assert scheduler.delay == 10
    assert not scheduler.running


@pytest.mark.parametrize("delay", [-1, -250])
def test_negative_delays_are_rejected(delay: int):
    scheduler = Scheduler(Counter().tick)
    with pytest.raises(ValueError):
        scheduler.delay = delay
    with pytest.raises(ValueError):
        scheduler.start(delay)
    assert scheduler.delay == 250


def test_debouncer_coalesces_calls():
    calls: list[tuple[object, ...]] = []

    async def main():
        debouncer = Debouncer(lambda *args: calls.append(args), delay=10)
        debouncer.submit("first")
        debouncer.submit("second")
        assert debouncer.pending
        await asyncio.sleep(0.05)
        assert not debouncer.pending

    asyncio.run(main())
    assert calls == [("second",)]


def test_debouncer_cancel():
    calls: list[tuple[object, ...]] = []

    async def main():
        debouncer = Debouncer(lambda *args: calls.append(args), delay=10)
        debouncer.submit(1)
        debouncer.cancel()
        await asyncio.sleep(0.03)

    asyncio.run(main())
    assert calls == []


def test_changing_the_delay_keeps_the_limit():
    counter = Counter()

    async def main():
        scheduler = Scheduler(counter.tick, counter.halt, delay=1000)
        scheduler.start(limit=3)
        scheduler.delay = 0
        await scheduler.join()
        assert not scheduler.running

    asyncio.run(main())
    assert counter.ticks == 3
    assert counter.halts == 0

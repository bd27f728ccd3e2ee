import asyncio

from orbital_audio.scheduling import AsyncioScheduler, ManualScheduler


def test_timers_fire_in_time_order():
    scheduler = ManualScheduler()
    fired = []
    scheduler.call_later(0.3, lambda: fired.append("c"))
    scheduler.call_later(0.1, lambda: fired.append("a"))
    scheduler.call_later(0.2, lambda: fired.append("b"))
    scheduler.advance(0.25)
    assert fired == ["a", "b"]
    scheduler.advance(0.1)
    assert fired == ["a", "b", "c"]
    assert scheduler.pending == 0


def test_cancelled_timers_never_fire():
    scheduler = ManualScheduler()
    fired = []
    handle = scheduler.call_later(0.1, lambda: fired.append(1))
    periodic = scheduler.call_every(0.05, lambda: fired.append(2))
    handle.cancel()
    periodic.cancel()
    scheduler.advance(1.0)
    assert fired == []


def test_periodic_timer_and_failing_callback():
    scheduler = ManualScheduler()
    ticks = []

    def tick():
        ticks.append(scheduler.now())
        if len(ticks) == 2:
            raise RuntimeError("boom")

    scheduler.call_every(0.05, tick)
    scheduler.advance(0.2)
    assert len(ticks) == 4


def test_asyncio_scheduler_runs_on_the_loop():
    async def main():
        scheduler = AsyncioScheduler()
        fired = []
        scheduler.call_every(0.01, lambda: fired.append(scheduler.now()))
        await asyncio.sleep(0.1)
        scheduler.cancel_all()
        count = len(fired)
        await asyncio.sleep(0.05)
        return count, len(fired)

    count, later = asyncio.run(main())
    assert count > 0
    assert later == count

import asyncio

from tanda.services.scheduling import Debouncer, ImmediateScheduler


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def test_burst_collapses_into_one_call(scheduler):
    counter = Counter()
    debouncer = Debouncer(0.5, counter, scheduler)

    for _ in range(5):
        debouncer.trigger()
        scheduler.advance(0.1)

    assert counter.calls == 0
    assert debouncer.pending

    scheduler.advance(0.5)
    assert counter.calls == 1
    assert not debouncer.pending


def test_trigger_resets_the_window(scheduler):
    counter = Counter()
    debouncer = Debouncer(0.5, counter, scheduler)

    debouncer.trigger()
    scheduler.advance(0.4)
    debouncer.trigger()
    scheduler.advance(0.4)
    assert counter.calls == 0

    scheduler.advance(0.1)
    assert counter.calls == 1


def test_cancel_drops_pending_call(scheduler):
    counter = Counter()
    debouncer = Debouncer(0.5, counter, scheduler)

    debouncer.trigger()
    debouncer.cancel()
    scheduler.advance(1)

    assert counter.calls == 0
    assert not debouncer.pending


def test_immediate_scheduler_fires_synchronously():
    counter = Counter()
    debouncer = Debouncer(0.5, counter, ImmediateScheduler())

    debouncer.trigger()
    debouncer.trigger()

    assert counter.calls == 2
    assert not debouncer.pending


def test_asyncio_loop_works_as_scheduler():
    loop = asyncio.new_event_loop()
    try:
        counter = Counter()
        debouncer = Debouncer(0.01, counter, loop)
        for _ in range(3):
            debouncer.trigger()
        loop.run_until_complete(asyncio.sleep(0.05))
    finally:
        loop.close()

    assert counter.calls == 1

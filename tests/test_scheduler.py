import threading

from resourcewatch.scheduler import PollingScheduler


class CountingTask:
    def __init__(self, interval_ms: int, fail: bool = False) -> None:
        self.interval_ms = interval_ms
        self.fail = fail
        self.loads = 0
        self.ticks = 0
        self.ticked = threading.Event()

    def startup_load(self):
        self.loads += 1
        return "absent"

    def refresh_cycle(self):
        self.ticks += 1
        self.ticked.set()
        if self.fail:
            raise RuntimeError("tick failed")
        return "refreshed"

    def get_polling_interval_ms(self):
        return self.interval_ms


def test_run_once_calls_hook_then_refresh():
    task = CountingTask(1000)
    calls = []
    scheduler = PollingScheduler(task, before_tick=lambda: calls.append("reconfigure"))
    assert scheduler.run_once() == "refreshed"
    assert calls == ["reconfigure"]
    assert task.ticks == 1


def test_tick_errors_do_not_escape():
    task = CountingTask(1000, fail=True)
    assert PollingScheduler(task).run_once() is None


def test_start_loads_then_ticks_until_stopped():
    task = CountingTask(60_000)
    scheduler = PollingScheduler(task)
    scheduler.start()
    try:
        assert task.ticked.wait(2.0)
        assert task.loads == 1
        task.ticked.clear()
        woke = False
        for _ in range(20):
            scheduler.reschedule(60_000, "https://to.example.net/api/4.0/steering")
            if task.ticked.wait(0.1):
                woke = True
                break
        assert woke
        assert task.ticks >= 2
    finally:
        scheduler.stop(timeout=2.0)
    assert not scheduler.running

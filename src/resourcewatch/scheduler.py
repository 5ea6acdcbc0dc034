from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol

LOGGER = logging.getLogger(__name__)


class Refreshable(Protocol):
    def startup_load(self) -> Any:  # pragma: no cover - structural contract
        ...

    def refresh_cycle(self) -> Any:  # pragma: no cover - structural contract
        ...

    def get_polling_interval_ms(self) -> int:  # pragma: no cover - structural contract
        ...


class PollingScheduler:
    """Drives a :class:`Refreshable` on its own polling interval.

    Ticks never overlap: one daemon thread runs them back to back, waiting
    ``get_polling_interval_ms()`` between ticks. ``reschedule`` cuts the
    current wait short so a new interval applies straight away.
    """

    def __init__(
        self,
        task: Refreshable,
        before_tick: Optional[Callable[[], Any]] = None,
        name: str = "resourcewatch",
    ) -> None:
        self.task = task
        self.before_tick = before_tick
        self.name = name
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> Any:
        try:
            if self.before_tick is not None:
                self.before_tick()
            return self.task.refresh_cycle()
        except Exception:
            LOGGER.exception("Refresh tick for %s failed", self.name)
            return None

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        try:
            self.task.startup_load()
        except Exception:
            LOGGER.exception("Startup load for %s failed", self.name)
        self._thread = threading.Thread(target=self._loop, name=f"{self.name}-poller", daemon=True)
        self._thread.start()

    def reschedule(self, interval_ms: int, url: str) -> None:
        LOGGER.info("%s polling %s every %dms", self.name, url, interval_ms)
        self._wake.set()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def wait(self) -> None:
        while self.running:
            self._stop.wait(1.0)

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._wake.clear()
            delay = max(self.task.get_polling_interval_ms(), 1) / 1000.0
            self._wake.wait(delay)

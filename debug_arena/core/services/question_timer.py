"""Countdown driver for the active question."""

from __future__ import annotations

from threading import Event, Thread
from typing import Callable

from debug_arena.constants.quiz_constants import TIMER_INTERVAL_SECONDS


class QuestionTimer:
    """Calls ``on_tick`` once per interval on a daemon thread until cancelled."""

    def __init__(self, on_tick: Callable[[], None], interval_seconds: float = TIMER_INTERVAL_SECONDS) -> None:
        self._on_tick = on_tick
        self._interval = interval_seconds
        self._cancelled = Event()
        self._thread: Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Timer already started.")
        self._thread = Thread(target=self._run, name="QuestionTimer", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._cancelled.is_set()

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval):
            self._on_tick()

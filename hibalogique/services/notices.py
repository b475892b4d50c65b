from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

Level = str  # "info" | "success" | "warning" | "error"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs callbacks on daemon threading.Timer threads."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        t = threading.Timer(delay, callback)
        t.daemon = True
        t.start()
        return t


@dataclass(frozen=True)
class Notice:
    message: str
    level: Level = "info"


class NoticeBoard:
    """
    Holds the one short-lived notice shown to the user.

    Showing a notice cancels the pending dismissal of the previous one and
    schedules its own; at most one dismissal timer is alive at a time.
    """

    def __init__(self, scheduler: Optional[Scheduler] = None, ttl: float = 3.5):
        self.scheduler = scheduler or ThreadingScheduler()
        self.ttl = ttl
        self._current: Optional[Notice] = None
        self._timer: Optional[TimerHandle] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[Notice]:
        return self._current

    def show(self, message: str, level: Level = "info") -> Notice:
        notice = Notice(message=message, level=level)
        with self._lock:
            self._cancel_timer()
            self._current = notice
            self._timer = self.scheduler.schedule(self.ttl, lambda: self._expire(notice))
        return notice

    def dismiss(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._current = None

    def _expire(self, notice: Notice) -> None:
        # a late timer must not clear a newer notice
        with self._lock:
            if self._current is notice:
                self._current = None
                self._timer = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def __repr__(self) -> str:
        return f"NoticeBoard(current={self._current!r})"

import itertools
from datetime import datetime, timezone

import pytest

from hibalogique.services.history_store import HistoryStore
from hibalogique.services.notices import NoticeBoard
from hibalogique.services.session import QuoteSession
from hibalogique.services.storage import InMemoryKeyValueStore


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class FakeScheduler:
    """Collects timers instead of starting threads; tests fire them by hand."""

    def __init__(self):
        self.timers = []

    def schedule(self, delay, callback):
        t = FakeTimer(delay, callback)
        self.timers.append(t)
        return t


class BrokenKeyValueStore(InMemoryKeyValueStore):
    """Reads work, writes fail once `broken` is switched on (or only for `broken_keys`)."""

    broken = False
    broken_keys = ()

    def set(self, key, value):
        if self.broken or key in self.broken_keys:
            raise OSError("disk full")
        super().set(key, value)


@pytest.fixture
def anyio_backend():
    # run anyio tests on asyncio only (no Trio needed)
    return "asyncio"


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"snap-{next(counter)}"


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def broken_kv():
    return BrokenKeyValueStore()


@pytest.fixture
def history(kv, clock, id_factory):
    return HistoryStore(kv, key="history", last_key="last", clock=clock, id_factory=id_factory)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def notices(scheduler):
    return NoticeBoard(scheduler=scheduler, ttl=3.5)


@pytest.fixture
def session(kv, history, notices, clock):
    return QuoteSession(kv, history=history, notices=notices, clock=clock, last_key="last")

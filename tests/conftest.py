"""Shared fixtures: a manually driven loop and an in-memory native watcher."""

import heapq
import itertools
import threading
import time
from collections import deque
from pathlib import Path
from typing import Callable, Dict, List, Set

import pytest

from globwatch.exceptions import SubscriptionError
from globwatch.models import EventKind, WatchEvent


class FakeTimer:
    def __init__(self, due: float, func, args):
        self.due = due
        self.func = func
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """Loop with a virtual clock; nothing runs until the test drives it."""

    def __init__(self):
        self.now = 0.0
        self._tasks = deque()
        self._timers = []
        self._seq = itertools.count()
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        return True

    def time(self):
        return self.now

    def submit(self, func, *args):
        self._tasks.append((func, args))

    def call_later(self, delay, func, *args):
        timer = FakeTimer(self.now + delay, func, args)
        heapq.heappush(self._timers, (timer.due, next(self._seq), timer))
        return timer

    def run(self):
        """Run queued tasks, including tasks they queue."""
        while self._tasks:
            func, args = self._tasks.popleft()
            func(*args)

    def advance(self, seconds: float):
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        self.run()
        while self._timers and self._timers[0][0] <= target + 1e-9:
            due, _, timer = heapq.heappop(self._timers)
            self.now = max(self.now, due)
            if not timer.cancelled:
                timer.func(*timer.args)
            self.run()
        self.now = target

    def pending_timers(self) -> int:
        return sum(1 for _, _, timer in self._timers if not timer.cancelled)


class FakeSubscription:
    def __init__(self, native: "FakeNative", path: Path, callback, is_directory: bool):
        self.native = native
        self.path = path
        self.callback = callback
        self.is_directory = is_directory
        self.closed = False

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.native.active.pop(self.path, None)
        self.native.closed.append(self.path)


class FakeNative:
    """Records subscriptions and lets tests fire raw callbacks."""

    def __init__(self):
        self.active: Dict[Path, FakeSubscription] = {}
        self.subscribed: List[Path] = []
        self.closed: List[Path] = []
        self.refuse: Set[Path] = set()
        self.running = False

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def subscribe(self, path, callback, is_directory=False):
        if path in self.refuse:
            raise SubscriptionError(f"Cannot watch {path}", path)
        assert path not in self.active, f"double subscription for {path}"
        subscription = FakeSubscription(self, path, callback, is_directory)
        self.active[path] = subscription
        self.subscribed.append(path)
        return subscription

    def fire(self, path: Path, times: int = 1):
        for _ in range(times):
            self.active[path].callback()


class EventRecorder:
    """Collects WatchEvents from every event kind."""

    def __init__(self):
        self.events: List[WatchEvent] = []
        self._lock = threading.Lock()

    def attach(self, watcher):
        for kind in EventKind:
            watcher.on(kind, self)
        return watcher

    def __call__(self, event: WatchEvent):
        with self._lock:
            self.events.append(event)

    def kinds(self, path=None) -> List[EventKind]:
        with self._lock:
            return [e.kind for e in self.events if path is None or e.path == path]

    def of(self, kind: EventKind) -> List[WatchEvent]:
        with self._lock:
            return [e for e in self.events if e.kind is kind]

    def paths(self, kind: EventKind) -> List[Path]:
        return [e.path for e in self.of(kind)]

    def clear(self):
        with self._lock:
            self.events.clear()

    def wait_for(self, predicate: Callable[["EventRecorder"], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate(self):
                return True
            time.sleep(0.02)
        return predicate(self)


@pytest.fixture
def loop():
    return FakeLoop()


@pytest.fixture
def native():
    return FakeNative()


@pytest.fixture
def recorder():
    return EventRecorder()

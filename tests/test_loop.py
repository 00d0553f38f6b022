"""Tests for event loop module."""

import pytest
import threading
import time

from globwatch.loop import EventLoop


@pytest.fixture
def event_loop():
    loop = EventLoop(name="TestLoop", daemon=True)
    loop.start()
    yield loop
    loop.stop()
    loop.join(timeout=2.0)


class TestEventLoop:
    """Tests for EventLoop class."""

    def test_tasks_run_in_order_on_loop_thread(self, event_loop):
        results = []
        threads = set()
        done = threading.Event()

        def task(value):
            results.append(value)
            threads.add(threading.current_thread().name)

        for i in range(5):
            event_loop.submit(task, i)
        event_loop.submit(done.set)

        assert done.wait(timeout=2.0)
        assert results == [0, 1, 2, 3, 4]
        assert threads == {"TestLoop"}

    def test_failing_task_does_not_stop_loop(self, event_loop):
        done = threading.Event()

        def broken():
            raise RuntimeError("boom")

        event_loop.submit(broken)
        event_loop.submit(done.set)

        assert done.wait(timeout=2.0)
        assert event_loop.is_running

    def test_call_later(self, event_loop):
        fired = threading.Event()
        in_loop = []

        def callback():
            in_loop.append(event_loop.in_loop_thread())
            fired.set()

        started = time.monotonic()
        event_loop.call_later(0.05, callback)

        assert fired.wait(timeout=2.0)
        assert time.monotonic() - started >= 0.05
        assert in_loop == [True]

    def test_cancelled_timer_does_not_fire(self, event_loop):
        fired = []

        handle = event_loop.call_later(0.05, fired.append, 1)
        handle.cancel()
        time.sleep(0.15)

        assert fired == []
        assert handle.cancelled

    def test_cancel_from_loop_task(self, event_loop):
        fired = []
        handles = []

        event_loop.submit(lambda: handles.append(event_loop.call_later(0.05, fired.append, 1)))
        event_loop.submit(lambda: handles[0].cancel())
        time.sleep(0.15)

        done = threading.Event()
        event_loop.submit(done.set)
        assert done.wait(timeout=2.0)
        assert fired == []
        assert event_loop.pending_timers() == 0

    def test_timers_fire_in_deadline_order(self, event_loop):
        fired = []
        done = threading.Event()

        event_loop.call_later(0.15, done.set)
        event_loop.call_later(0.1, fired.append, "late")
        event_loop.call_later(0.02, fired.append, "early")

        assert done.wait(timeout=2.0)
        assert fired == ["early", "late"]

    def test_timers_do_not_start_threads(self, event_loop):
        before = threading.active_count()
        handles = [event_loop.call_later(5.0, print) for _ in range(500)]

        assert threading.active_count() - before == 0
        assert event_loop.pending_timers() == 500

        for handle in handles:
            handle.cancel()
        assert event_loop.pending_timers() == 0

    def test_timer_reset_on_loop_thread(self, event_loop):
        fired = []
        done = threading.Event()
        state = {}

        def arm():
            if "handle" in state:
                state["handle"].cancel()
            state["handle"] = event_loop.call_later(0.05, fired.append, len(fired))

        for _ in range(3):
            event_loop.submit(arm)
        event_loop.call_later(0.3, done.set)

        assert done.wait(timeout=2.0)
        assert fired == [0]

    def test_stop_and_join(self):
        loop = EventLoop(daemon=True)
        loop.start()
        assert loop.is_running

        loop.stop()
        assert loop.join(timeout=2.0) is True
        assert not loop.is_running

    def test_submit_after_stop_is_ignored(self):
        loop = EventLoop(daemon=True)
        loop.start()
        loop.stop()
        loop.join(timeout=2.0)

        ran = []
        loop.submit(ran.append, 1)
        assert ran == []

    def test_join_without_start(self):
        assert EventLoop().join(timeout=0.1) is True

    def test_persistent_loop_is_not_daemon(self):
        loop = EventLoop(daemon=False)
        loop.start()
        try:
            assert loop._thread.daemon is False
        finally:
            loop.stop()
            loop.join(timeout=2.0)

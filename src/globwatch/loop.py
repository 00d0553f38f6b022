"""Single-threaded task loop that runs every watch engine callback."""

import heapq
import itertools
import logging
import threading
import time
from queue import Empty, Queue
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

_STOP = object()
_WAKE = object()


class TimerHandle:
    """
    A callback scheduled to run on the loop after a delay.

    Timers are deadlines kept by the loop, not threads. Cancelling from the
    loop thread is final: the callback is skipped when its deadline comes.
    """

    def __init__(self, when: float, func: Callable[..., Any], args: tuple):
        self.when = when
        self._func = func
        self._args = args
        self._cancelled = False

    def _run(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._func(*self._args)

    def cancel(self) -> None:
        """Prevent the callback from running."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class EventLoop:
    """
    Runs submitted callables and due timers one at a time on a dedicated thread.

    Native watcher threads never touch engine state directly; they submit
    work here, so engine code needs no locking of its own. Timer deadlines
    live in a heap and the loop sleeps on its queue until the next one.
    """

    def __init__(self, name: str = "GlobWatchLoop", daemon: bool = False):
        """
        Initialize the loop.

        Args:
            name: Thread name
            daemon: If False the loop keeps the process alive until stopped
        """
        self.name = name
        self.daemon = daemon
        self._queue: "Queue[Any]" = Queue()
        self._timers: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()
        self._thread: Optional[threading.Thread] = None
        self._stopped = False
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the loop thread. Does nothing if already started."""
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=self.daemon)
            self._thread.start()

    def submit(self, func: Callable[..., Any], *args: Any) -> None:
        """Queue a callable to run on the loop thread."""
        if self._stopped:
            return
        self._queue.put((func, args))

    def call_later(self, delay: float, func: Callable[..., Any], *args: Any) -> TimerHandle:
        """
        Run a callable on the loop thread after a delay.

        Args:
            delay: Delay in seconds
            func: Callable to run

        Returns:
            Handle that can cancel the call
        """
        handle = TimerHandle(self.time() + delay, func, args)
        with self._lock:
            heapq.heappush(self._timers, (handle.when, next(self._seq), handle))

        if not self.in_loop_thread():
            # Wake the loop so it recomputes its sleep.
            self._queue.put(_WAKE)
        return handle

    def stop(self) -> None:
        """Stop the loop after the tasks already queued have run."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self._queue.put(_STOP)

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the loop thread to finish.

        Returns:
            True if the thread is no longer running
        """
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return thread is None
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def time(self) -> float:
        """Monotonic time used for all loop scheduling."""
        return time.monotonic()

    def in_loop_thread(self) -> bool:
        return self._thread is threading.current_thread()

    def pending_timers(self) -> int:
        """Get number of timers that are scheduled and not cancelled."""
        with self._lock:
            return sum(1 for _, _, handle in self._timers if not handle.cancelled)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _pop_due(self) -> Optional[TimerHandle]:
        with self._lock:
            while self._timers:
                when, _, handle = self._timers[0]
                if handle.cancelled:
                    heapq.heappop(self._timers)
                    continue
                if when > self.time():
                    return None
                heapq.heappop(self._timers)
                return handle
        return None

    def _next_timeout(self) -> Optional[float]:
        with self._lock:
            if not self._timers:
                return None
            return max(0.0, self._timers[0][0] - self.time())

    def _call(self, func: Callable[..., Any], args: tuple) -> None:
        try:
            func(*args)
        except Exception:
            logger.exception(f"Unhandled error in {self.name} task {func!r}")

    def _run(self) -> None:
        logger.debug(f"{self.name} started")

        while True:
            handle = self._pop_due()
            while handle is not None:
                self._call(handle._run, ())
                handle = self._pop_due()

            try:
                item = self._queue.get(timeout=self._next_timeout())
            except Empty:
                continue

            if item is _STOP:
                break
            if item is _WAKE:
                continue

            func, args = item
            self._call(func, args)

        with self._lock:
            self._timers.clear()
        logger.debug(f"{self.name} stopped")

"""Per-path debouncing of raw change signals into single events."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

from .exceptions import ProbeError
from .listing import path_exists
from .loop import EventLoop, TimerHandle
from .models import EventKind, priority_of

logger = logging.getLogger(__name__)


@dataclass
class PendingEvent:
    """An event waiting for its path to go quiet."""
    kind: EventKind
    path: Path
    priority: int
    timer: Optional[TimerHandle] = None


class EventCoalescer:
    """
    Collapses bursts of signals for one path into a single event.

    Every signal restarts the path's quiet window. Within a window the
    highest priority kind wins (unlinkDir > unlink > addDir > add > change).
    A ``change`` is only emitted if the path still exists when the window
    closes; otherwise it is reported as ``unlink``, since some platforms
    deliver a deletion as a plain modification.
    """

    def __init__(
        self,
        loop: EventLoop,
        emit: Callable[[EventKind, Path], None],
        report_error: Callable[[BaseException, Optional[Path]], None],
        debounce_ms: int = 50,
        probe: Callable[[Path], bool] = path_exists,
    ):
        """
        Initialize the coalescer.

        Args:
            loop: Loop the quiet-window timers run on
            emit: Receives the resolved event kind and path
            report_error: Receives probe failures
            debounce_ms: Quiet window in milliseconds
            probe: Existence check used to resolve ``change``
        """
        self.loop = loop
        self.emit = emit
        self.report_error = report_error
        self.debounce_ms = debounce_ms
        self.probe = probe
        self._pending: Dict[Path, PendingEvent] = {}
        self._closed = False

    def notify(self, path: Path, kind: EventKind) -> None:
        """
        Record a signal for a path and restart its quiet window.

        Args:
            path: Absolute path the signal is about
            kind: Event kind the signal stands for
        """
        if self._closed:
            return

        priority = priority_of(kind)
        pending = self._pending.get(path)

        if pending is None:
            pending = PendingEvent(kind=kind, path=path, priority=priority)
            self._pending[path] = pending
        else:
            if pending.timer is not None:
                pending.timer.cancel()
            if priority >= pending.priority:
                pending.kind = kind
                pending.priority = priority

        pending.timer = self.loop.call_later(self.debounce_ms / 1000.0, self._expire, path)

    def _expire(self, path: Path) -> None:
        pending = self._pending.pop(path, None)
        if pending is None:
            return

        kind = pending.kind
        if kind is EventKind.CHANGE:
            try:
                if not self.probe(path):
                    logger.debug(f"{path} is gone, reporting change as unlink")
                    kind = EventKind.UNLINK
            except ProbeError as e:
                self.report_error(e, path)
                return

        if not self._closed:
            self.emit(kind, path)

    def pending_kind(self, path: Path) -> Optional[EventKind]:
        """Return the kind currently queued for a path, if any."""
        pending = self._pending.get(path)
        return pending.kind if pending else None

    def pending_count(self) -> int:
        """Get number of paths with an open quiet window."""
        return len(self._pending)

    def seal(self) -> None:
        """Ignore further signals. Safe to call from any thread."""
        self._closed = True

    def close(self) -> None:
        """Drop every pending event and ignore further signals."""
        self._closed = True
        for pending in self._pending.values():
            if pending.timer is not None:
                pending.timer.cancel()
        self._pending.clear()

"""Public glob watcher: listener registration, startup and shutdown."""

import logging
import threading
from collections import defaultdict
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Union

from .bootstrap import Bootstrapper
from .coalescer import EventCoalescer
from .config import WatchConfig
from .exceptions import WatcherClosedError
from .listing import DirectoryLister
from .loop import EventLoop
from .models import EventKind, WatchEvent
from .native import NativeWatcher
from .patterns import GlobMatcher
from .reconciler import DirectoryReconciler
from .registry import WatchRegistry

logger = logging.getLogger(__name__)

Listener = Callable[[WatchEvent], None]
Patterns = Union[str, Sequence[str]]


class GlobWatcher:
    """
    Watches the files and directories selected by glob patterns.

    Raw native notifications are turned into ``add``, ``addDir``,
    ``change``, ``unlink`` and ``unlinkDir`` events, one per path per quiet
    window. ``ready`` follows the initial pass; ``error`` carries failures,
    which are never raised to the caller.

    Listeners run on the watcher's loop thread. Register them before
    calling start() to see the events of the initial pass.
    """

    def __init__(
        self,
        patterns: Patterns,
        config: Optional[WatchConfig] = None,
        *,
        native: Optional[NativeWatcher] = None,
        loop: Optional[EventLoop] = None,
    ):
        """
        Initialize the watcher.

        Args:
            patterns: Glob pattern or patterns, relative to ``config.cwd``
            config: Watcher configuration
            native: Native subscription source (defaults to watchdog)
            loop: Loop to run the engine on (defaults to a new thread)
        """
        self.config = config or WatchConfig()
        self.matcher = GlobMatcher(patterns)

        self._listeners: Dict[EventKind, List[Listener]] = defaultdict(list)
        self._listeners_lock = threading.Lock()
        self._closed = False
        self._started = False
        self._ready = False

        self._loop = loop or EventLoop(daemon=not self.config.persistent)
        self._native = native or NativeWatcher(
            use_polling=self.config.use_polling,
            poll_interval=self.config.poll_interval_ms / 1000.0,
        )
        self._coalescer = EventCoalescer(
            self._loop,
            self._emit,
            self._report_error,
            debounce_ms=self.config.debounce_ms,
        )
        self._registry = WatchRegistry(
            self._native,
            self._coalescer,
            self._emit,
            on_file_signal=self._on_file_signal,
            on_directory_signal=self._on_directory_signal,
            clock=self._loop.time,
        )
        self._reconciler = DirectoryReconciler(
            self._registry,
            DirectoryLister(
                self.matcher,
                confirm=self.config.confirm_listings,
                max_attempts=self.config.max_listing_attempts,
            ),
            self._loop,
            self._report_error,
        )
        self._registry.reconciler = self._reconciler
        self._bootstrapper = Bootstrapper(
            self.config.cwd,
            self.matcher,
            self._registry,
            self._loop,
            on_ready=self._on_ready,
            report_error=self._report_error,
            settle_ms=self.config.settle_ms,
        )

    # Listener registration

    def on(self, kind: Union[EventKind, str], listener: Listener) -> "GlobWatcher":
        """
        Register a listener for an event.

        Args:
            kind: EventKind or its name ("add", "addDir", "change",
                "unlink", "unlinkDir", "ready", "error")
            listener: Called with a WatchEvent

        Returns:
            The watcher, for chaining

        Raises:
            ValueError: If the event name is unknown
        """
        kind = EventKind.parse(kind)
        with self._listeners_lock:
            self._listeners[kind].append(listener)
        return self

    def off(self, kind: Union[EventKind, str], listener: Listener) -> bool:
        """
        Remove a listener.

        Returns:
            True if the listener was registered
        """
        kind = EventKind.parse(kind)
        with self._listeners_lock:
            try:
                self._listeners[kind].remove(listener)
                return True
            except ValueError:
                return False

    # Lifecycle

    def start(self) -> "GlobWatcher":
        """
        Start watching.

        The initial pass runs in the background; ``ready`` or ``error``
        reports how it went.

        Returns:
            The watcher, for chaining

        Raises:
            WatcherClosedError: If the watcher was closed
        """
        if self._closed:
            raise WatcherClosedError("Watcher has been closed")
        if self._started:
            return self
        self._started = True

        self._loop.start()
        self._native.start()
        self._loop.submit(self._bootstrapper.run)
        return self

    def close(self) -> None:
        """
        Stop watching and silence the watcher.

        No event is delivered once this returns. Resources are released in
        the background; use join() to wait for that.
        """
        if self._closed:
            return
        self._closed = True
        self._registry.seal()
        self._coalescer.seal()
        logger.debug(f"Closing watcher for {self.matcher.patterns}")

        if self._started:
            self._loop.submit(self._teardown)
        else:
            self._teardown()

    def _teardown(self) -> None:
        try:
            self._bootstrapper.cancel()
            self._coalescer.close()
            released = self._registry.close()
            logger.debug(f"Released {released} watch(es)")
        finally:
            self._native.stop()
            self._loop.stop()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for a closed watcher to finish releasing resources.

        Returns:
            True if the loop thread has finished
        """
        return self._loop.join(timeout)

    # Engine callbacks

    def _on_file_signal(self, path: Path) -> None:
        # Runs on a native thread.
        self._loop.submit(self._coalescer.notify, path, EventKind.CHANGE)

    def _on_directory_signal(self, path: Path) -> None:
        # Runs on a native thread.
        self._loop.submit(self._reconciler.schedule, path)

    def _on_ready(self) -> None:
        self._ready = True
        logger.info(
            f"Ready: watching {len(self._registry.get_files())} file(s) and "
            f"{len(self._registry.get_directories())} directory(ies)"
        )
        self._dispatch(WatchEvent(EventKind.READY))

    def _emit(self, kind: EventKind, path: Path) -> None:
        if self._closed:
            return
        logger.debug(f"{kind.value}: {path}")
        self._dispatch(WatchEvent(kind, path=path))

    def _report_error(self, error: BaseException, path: Optional[Path]) -> None:
        if self._closed:
            return
        self._dispatch(WatchEvent(EventKind.ERROR, path=path, error=error))

    def _dispatch(self, event: WatchEvent) -> None:
        if self._closed:
            return

        with self._listeners_lock:
            listeners = list(self._listeners.get(event.kind, ()))

        if event.kind is EventKind.ERROR and not listeners:
            logger.error(f"Unhandled watcher error for {event.path}: {event.error}")

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.warning(f"Listener {listener!r} failed on {event.kind.value}", exc_info=True)

    # Introspection

    @property
    def cwd(self) -> Path:
        return self.config.cwd

    @property
    def patterns(self) -> List[str]:
        return list(self.matcher.patterns)

    @property
    def is_ready(self) -> bool:
        """Check whether the initial pass has settled."""
        return self._ready

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get_watched(self) -> Dict[str, FrozenSet[Path]]:
        """
        Snapshot of what is being watched.

        Returns:
            {"files": frozenset of paths, "directories": frozenset of paths}
        """
        return {
            "files": self._registry.get_files(),
            "directories": self._registry.get_directories(),
        }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def watch(
    patterns: Patterns,
    cwd: Optional[Union[str, Path]] = None,
    persistent: bool = True,
    listeners: Optional[Mapping[Union[EventKind, str], Listener]] = None,
    **options,
) -> GlobWatcher:
    """
    Start watching the paths selected by glob patterns.

    Args:
        patterns: Glob pattern or patterns
        cwd: Base directory (default: current working directory)
        persistent: Whether the watcher keeps the process alive
        listeners: Listeners to register before the initial pass starts
        **options: Further WatchConfig fields (debounce_ms, settle_ms, ...)

    Returns:
        The started watcher
    """
    if cwd is not None:
        options["cwd"] = Path(cwd)
    config = WatchConfig(persistent=persistent, **options)

    watcher = GlobWatcher(patterns, config)
    for kind, listener in (listeners or {}).items():
        watcher.on(kind, listener)
    return watcher.start()

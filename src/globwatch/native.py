"""Per-path change subscriptions on top of the watchdog library."""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch
from watchdog.observers.polling import PollingObserver

from .exceptions import SubscriptionError

logger = logging.getLogger(__name__)

# Access notifications, not changes.
IGNORED_EVENT_TYPES = frozenset({"opened", "closed", "closed_no_write"})


class PathEventHandler(FileSystemEventHandler):
    """Invokes a callback for raw watchdog events that concern one path."""

    def __init__(self, path: Path, callback: Callable[[], None], is_directory: bool):
        super().__init__()
        self.path = os.fspath(path)
        self.callback = callback
        self.is_directory = is_directory
        self.active = True

    def concerns(self, event: FileSystemEvent) -> bool:
        """Check whether a raw event should reach the callback."""
        if event.event_type in IGNORED_EVENT_TYPES:
            return False

        if self.is_directory:
            # Content writes to children do not change the listing.
            return not (event.event_type == "modified" and not event.is_directory)

        dest_path = getattr(event, "dest_path", "")
        return self.path in (event.src_path, dest_path)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if self.active and self.concerns(event):
            self.callback()


class Subscription:
    """Handle for one active per-path subscription."""

    def __init__(self, watcher: "NativeWatcher", path: Path, watch_dir: str, handler: PathEventHandler):
        self.path = path
        self.watch_dir = watch_dir
        self.handler = handler
        self._watcher = watcher
        self._closed = False

    def close(self) -> None:
        """Cancel the subscription. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.handler.active = False
        self._watcher._release(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def __repr__(self) -> str:
        return f"Subscription({str(self.path)!r}, closed={self._closed})"


class NativeWatcher:
    """
    Hands out per-path subscriptions from a single watchdog observer.

    A directory is watched directly. A file is watched through its parent
    directory and only sees events naming the file. Watches on the same
    directory are shared and unscheduled when their last subscription closes.
    """

    def __init__(self, use_polling: bool = False, poll_interval: float = 1.0):
        """
        Initialize the native watcher.

        Args:
            use_polling: Use the polling observer instead of OS notifications
            poll_interval: Seconds between polls of the polling observer
        """
        self.use_polling = use_polling
        self.poll_interval = poll_interval
        self._observer: Optional[BaseObserver] = None
        self._watches: Dict[str, ObservedWatch] = {}
        self._refs: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _create_observer(self) -> BaseObserver:
        if self.use_polling:
            return PollingObserver(timeout=self.poll_interval)
        return Observer()

    def start(self) -> None:
        """Start the underlying observer. Does nothing if already started."""
        with self._lock:
            if self._observer is not None:
                return
            self._observer = self._create_observer()
            self._observer.start()

    def stop(self) -> None:
        """Stop the observer and drop every subscription."""
        with self._lock:
            observer = self._observer
            self._observer = None
            self._watches.clear()
            self._refs.clear()

        if observer is not None:
            observer.stop()
            if observer is not threading.current_thread():
                observer.join(timeout=5.0)

    def subscribe(self, path: Path, callback: Callable[[], None], is_directory: bool = False) -> Subscription:
        """
        Watch a path.

        The callback runs on a watchdog thread and may be invoked
        spuriously or more than once per change. Deleting a watched file
        may be reported like any other change.

        Args:
            path: Absolute path to watch
            callback: Called without arguments when the path changes
            is_directory: Whether the path is a directory

        Returns:
            Subscription handle

        Raises:
            SubscriptionError: If the path cannot be watched
        """
        watch_dir = os.fspath(path) if is_directory else os.path.dirname(os.fspath(path))
        handler = PathEventHandler(path, callback, is_directory)

        with self._lock:
            if self._observer is None:
                raise SubscriptionError(f"Native watcher is not running: {path}", path)

            try:
                if watch_dir in self._watches:
                    self._observer.add_handler_for_watch(handler, self._watches[watch_dir])
                else:
                    self._watches[watch_dir] = self._observer.schedule(handler, watch_dir, recursive=False)
            except OSError as e:
                # A failed schedule can leave the handler registered.
                handler.active = False
                raise SubscriptionError(f"Cannot watch {path}: {e}", path) from e

            self._refs[watch_dir] = self._refs.get(watch_dir, 0) + 1

        logger.debug(f"Subscribed to {path} via {watch_dir}")
        return Subscription(self, path, watch_dir, handler)

    def _release(self, subscription: Subscription) -> None:
        watch_dir = subscription.watch_dir

        with self._lock:
            watch = self._watches.get(watch_dir)
            if self._observer is None or watch is None:
                return

            remaining = self._refs.get(watch_dir, 1) - 1
            try:
                if remaining > 0:
                    self._refs[watch_dir] = remaining
                    self._observer.remove_handler_for_watch(subscription.handler, watch)
                else:
                    del self._refs[watch_dir]
                    del self._watches[watch_dir]
                    self._observer.unschedule(watch)
            except (KeyError, OSError) as e:
                # The emitter may already be gone with its directory.
                logger.debug(f"Releasing watch on {watch_dir} failed: {e}")

        logger.debug(f"Unsubscribed from {subscription.path}")

    def is_watching(self, directory: Path) -> bool:
        """Check whether a directory currently has a native watch."""
        with self._lock:
            return os.fspath(directory) in self._watches

    def __len__(self) -> int:
        """Return the number of watched directories."""
        with self._lock:
            return len(self._watches)

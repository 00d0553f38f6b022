"""Tables of watched files and directories and their native subscriptions."""

import logging
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, Optional, Set

from .coalescer import EventCoalescer
from .models import EventKind
from .native import NativeWatcher, Subscription

if TYPE_CHECKING:
    from .reconciler import DirectoryReconciler

logger = logging.getLogger(__name__)


class WatchRegistry:
    """
    Authoritative record of what is being watched.

    Files and directories live in separate tables keyed by absolute path;
    each entry owns exactly one native subscription. Arming emits ``add`` /
    ``addDir`` directly, disarming hands ``unlink`` / ``unlinkDir`` to the
    coalescer. All four operations are idempotent.

    Mutations happen on the engine loop. The lock only makes snapshots safe
    to take from other threads.
    """

    def __init__(
        self,
        native: NativeWatcher,
        coalescer: EventCoalescer,
        emit: Callable[[EventKind, Path], None],
        on_file_signal: Callable[[Path], None],
        on_directory_signal: Callable[[Path], None],
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the registry.

        Args:
            native: Source of native subscriptions
            coalescer: Receives removal events
            emit: Receives add/addDir events
            on_file_signal: Called from a native thread when a file changes
            on_directory_signal: Called from a native thread when a
                directory changes
            clock: Monotonic clock used to time registry activity
        """
        self.native = native
        self.coalescer = coalescer
        self.emit = emit
        self.on_file_signal = on_file_signal
        self.on_directory_signal = on_directory_signal
        self.clock = clock
        self.reconciler: Optional["DirectoryReconciler"] = None
        self.last_activity = clock()
        self._files: Dict[Path, Subscription] = {}
        self._dirs: Dict[Path, Subscription] = {}
        self._closed = False
        self._lock = threading.RLock()

    def _touch(self) -> None:
        self.last_activity = self.clock()

    def arm_file(self, path: Path) -> bool:
        """
        Start watching a file and emit ``add``.

        Args:
            path: Absolute path of the file

        Returns:
            True if the file was armed, False if already armed or closed

        Raises:
            SubscriptionError: If the native watcher refuses the path
        """
        with self._lock:
            if self._closed or path in self._files or path in self._dirs:
                return False

            self._files[path] = self.native.subscribe(
                path, lambda: self.on_file_signal(path), is_directory=False
            )
            self._touch()

        logger.debug(f"Armed file {path}")
        self.emit(EventKind.ADD, path)
        return True

    def arm_directory(self, path: Path) -> bool:
        """
        Start watching a directory, reconcile its children, emit ``addDir``.

        Children matching the patterns are armed before ``addDir`` is
        emitted, subdirectories recursively.

        Args:
            path: Absolute path of the directory

        Returns:
            True if the directory was armed, False if already armed or closed

        Raises:
            SubscriptionError: If the native watcher refuses the path
        """
        with self._lock:
            if self._closed or path in self._dirs or path in self._files:
                return False

            self._dirs[path] = self.native.subscribe(
                path, lambda: self.on_directory_signal(path), is_directory=True
            )
            self._touch()

        logger.debug(f"Armed directory {path}")
        if self.reconciler is not None:
            self.reconciler.reconcile(path)

        self.emit(EventKind.ADD_DIR, path)
        return True

    def disarm_file(self, path: Path) -> bool:
        """
        Stop watching a file and queue ``unlink``.

        Returns:
            True if the file was armed
        """
        with self._lock:
            subscription = self._files.pop(path, None)
            if subscription is None:
                return False
            subscription.close()
            self._touch()

        logger.debug(f"Disarmed file {path}")
        self.coalescer.notify(path, EventKind.UNLINK)
        return True

    def disarm_directory(self, path: Path) -> bool:
        """
        Stop watching a directory and everything armed below it.

        Queues ``unlinkDir`` for the directory and the matching removal
        event for every descendant.

        Returns:
            True if the directory was armed
        """
        with self._lock:
            subscription = self._dirs.pop(path, None)
            if subscription is None:
                return False
            subscription.close()
            self._touch()

        for child in self.files_in(path):
            self.disarm_file(child)
        for child in self.directories_in(path):
            self.disarm_directory(child)

        logger.debug(f"Disarmed directory {path}")
        self.coalescer.notify(path, EventKind.UNLINK_DIR)
        return True

    def files_in(self, directory: Path) -> Set[Path]:
        """Armed files whose parent is ``directory``."""
        with self._lock:
            return {path for path in self._files if path.parent == directory}

    def directories_in(self, directory: Path) -> Set[Path]:
        """Armed directories whose parent is ``directory``."""
        with self._lock:
            return {path for path in self._dirs if path.parent == directory and path != directory}

    def is_file(self, path: Path) -> bool:
        with self._lock:
            return path in self._files

    def is_directory(self, path: Path) -> bool:
        with self._lock:
            return path in self._dirs

    def get_files(self) -> FrozenSet[Path]:
        """
        Get the currently armed files.

        Returns:
            Frozen set of absolute file paths
        """
        with self._lock:
            return frozenset(self._files)

    def get_directories(self) -> FrozenSet[Path]:
        """
        Get the currently armed directories.

        Returns:
            Frozen set of absolute directory paths
        """
        with self._lock:
            return frozenset(self._dirs)

    def seal(self) -> None:
        """Refuse any further arming."""
        self._closed = True

    def close(self) -> int:
        """
        Release every subscription and refuse further arming.

        Removal events still go to the coalescer, which drops them once
        closed.

        Returns:
            Number of entries released
        """
        with self._lock:
            self._closed = True
            files = list(self._files)
            dirs = list(self._dirs)

        for path in files:
            self.disarm_file(path)
        for path in dirs:
            self.disarm_directory(path)

        return len(files) + len(dirs)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        """Return the number of armed files and directories."""
        with self._lock:
            return len(self._files) + len(self._dirs)

    def __contains__(self, path: Path) -> bool:
        """Check if a path is armed as a file or a directory."""
        with self._lock:
            return path in self._files or path in self._dirs

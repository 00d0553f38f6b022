"""
globwatch

Watches the files and directories selected by glob patterns and turns the
raw, platform-dependent notifications of the operating system into a
stable stream of events.

Features:
- Events: add, addDir, change, unlink, unlinkDir, ready, error
- Per-path debouncing with priority (a removal is never hidden by a
  stale change)
- Deletions misreported as modifications are corrected
- Directories are re-listed on change, so new matches are picked up
- One engine thread per watcher; no shared global state
"""

from .models import (
    EventKind,
    WatchEvent,
    PRIORITIES,
)

from .config import WatchConfig

from .exceptions import (
    WatcherError,
    ListingError,
    ProbeError,
    SubscriptionError,
    BootstrapError,
    WatcherClosedError,
)

from .patterns import GlobMatcher
from .listing import DirectoryLister, path_exists
from .loop import EventLoop
from .native import NativeWatcher, Subscription
from .coalescer import EventCoalescer, PendingEvent
from .registry import WatchRegistry
from .reconciler import DirectoryReconciler
from .bootstrap import Bootstrapper
from .watcher import GlobWatcher, watch


__all__ = [
    # Models
    "EventKind",
    "WatchEvent",
    "PRIORITIES",
    # Config
    "WatchConfig",
    # Exceptions
    "WatcherError",
    "ListingError",
    "ProbeError",
    "SubscriptionError",
    "BootstrapError",
    "WatcherClosedError",
    # Components
    "GlobMatcher",
    "DirectoryLister",
    "path_exists",
    "EventLoop",
    "NativeWatcher",
    "Subscription",
    "EventCoalescer",
    "PendingEvent",
    "WatchRegistry",
    "DirectoryReconciler",
    "Bootstrapper",
    # Public API
    "GlobWatcher",
    "watch",
]

__version__ = "0.1.0"

"""Custom exceptions for the globwatch package."""

from pathlib import Path
from typing import Optional


class WatcherError(Exception):
    """Base exception for all watcher errors."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class ListingError(WatcherError):
    """Listing the children of a directory failed."""
    pass


class ProbeError(WatcherError):
    """Checking whether a path exists failed."""
    pass


class SubscriptionError(WatcherError):
    """The native watcher refused to watch a path."""
    pass


class BootstrapError(WatcherError):
    """Initial pattern expansion failed."""
    pass


class WatcherClosedError(WatcherError):
    """Watcher has already been closed."""
    pass

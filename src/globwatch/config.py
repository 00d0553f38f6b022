"""Configuration for the globwatch package."""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class WatchConfig:
    """
    Configuration options for a glob watcher.

    Attributes:
        cwd: Base directory for relative patterns and the initial listing
        persistent: Whether the watcher thread keeps the process alive
        debounce_ms: Quiet window before a coalesced event is emitted
        settle_ms: Registry quiet period required before emitting ready
        confirm_listings: Re-list a directory until two passes agree on count
        max_listing_attempts: Upper bound on confirmation passes
        use_polling: Use the polling observer instead of native notifications
        poll_interval_ms: Interval of the polling observer
    """
    cwd: Path = field(default_factory=Path.cwd)
    persistent: bool = True
    debounce_ms: int = 50
    settle_ms: int = 20
    confirm_listings: bool = True
    max_listing_attempts: int = 5
    use_polling: bool = False
    poll_interval_ms: int = 1000

    def __post_init__(self):
        self.cwd = Path(os.path.abspath(self.cwd))

        for name in ("debounce_ms", "settle_ms", "poll_interval_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.max_listing_attempts < 1:
            raise ValueError("max_listing_attempts must be at least 1")


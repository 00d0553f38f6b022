"""Data models for the globwatch package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union
import time


class EventKind(Enum):
    """Events emitted by a glob watcher."""
    ADD = "add"
    ADD_DIR = "addDir"
    CHANGE = "change"
    UNLINK = "unlink"
    UNLINK_DIR = "unlinkDir"
    READY = "ready"
    ERROR = "error"

    @classmethod
    def parse(cls, kind: Union["EventKind", str]) -> "EventKind":
        """
        Accept either a member or its public event name.

        Raises:
            ValueError: If the name is not a known event
        """
        if isinstance(kind, cls):
            return kind
        return cls(kind)


# Higher wins inside one quiet window.
PRIORITIES = {
    EventKind.CHANGE: 1,
    EventKind.ADD: 2,
    EventKind.ADD_DIR: 3,
    EventKind.UNLINK: 4,
    EventKind.UNLINK_DIR: 5,
}


def priority_of(kind: EventKind) -> int:
    """Priority of a file event kind; 0 for kinds that are never coalesced."""
    return PRIORITIES.get(kind, 0)


@dataclass(frozen=True)
class WatchEvent:
    """
    An event delivered to watcher listeners.

    Attributes:
        kind: What happened
        path: Absolute path the event is about (None for ready and
            bootstrap errors)
        error: The exception behind an ERROR event
        timestamp: Unix timestamp when the event was emitted
    """
    kind: EventKind
    path: Optional[Path] = None
    error: Optional[BaseException] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.path is not None and not self.path.is_absolute():
            raise ValueError(f"path must be absolute: {self.path}")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "event": self.kind.value,
            "path": str(self.path) if self.path else None,
            "error": str(self.error) if self.error else None,
            "timestamp": self.timestamp,
        }

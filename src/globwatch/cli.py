#!/usr/bin/env python3
"""
CLI for watching glob patterns and printing what happens.

Usage:
    python -m globwatch "**/*"
    python -m globwatch "src/**/*.py" "!**/__pycache__/**" --cwd /path/to/project
"""

import argparse
import logging
import signal
import threading
import time
from pathlib import Path
from typing import List, Optional

from .config import WatchConfig
from .models import EventKind, WatchEvent
from .watcher import GlobWatcher


logger = logging.getLogger("globwatch.cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.stopped = threading.Event()
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.stopped.set()


class ProgressReporter:
    """Counts the initial matches and logs everything after ready."""

    def __init__(self):
        self.files: List[Path] = []
        self.dirs: List[Path] = []
        self.ready = False
        self.start = time.monotonic()

    def attach(self, watcher: GlobWatcher) -> None:
        watcher.on(EventKind.ADD, self.on_add)
        watcher.on(EventKind.ADD_DIR, self.on_add_dir)
        watcher.on(EventKind.READY, self.on_ready)
        watcher.on(EventKind.CHANGE, self.on_change)
        watcher.on(EventKind.UNLINK, self.on_removed)
        watcher.on(EventKind.UNLINK_DIR, self.on_removed)
        watcher.on(EventKind.ERROR, self.on_error)

    def on_add(self, event: WatchEvent) -> None:
        if self.ready:
            logger.info(f"add file after ready: {event.path}")
        else:
            self.files.append(event.path)

    def on_add_dir(self, event: WatchEvent) -> None:
        if self.ready:
            logger.info(f"add dir after ready: {event.path}")
        else:
            self.dirs.append(event.path)

    def on_ready(self, event: WatchEvent) -> None:
        elapsed_ms = (time.monotonic() - self.start) * 1000
        logger.info(f"ready in {elapsed_ms:.0f}ms")
        logger.info(f"watching {len(self.files)} files")
        logger.info(f"watching {len(self.dirs)} directories")
        self.ready = True

    def on_change(self, event: WatchEvent) -> None:
        logger.info(f"change: {event.path}")

    def on_removed(self, event: WatchEvent) -> None:
        logger.info(f"{event.kind.value}: {event.path}")

    def on_error(self, event: WatchEvent) -> None:
        logger.error(f"error: {event.path}: {event.error}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="globwatch",
        description="Watch files matching glob patterns",
    )
    parser.add_argument("patterns", nargs="+", help="Glob patterns (prefix with ! to exclude)")
    parser.add_argument("--cwd", default=".", help="Base directory for the patterns")
    parser.add_argument("--debounce", type=int, default=50, help="Quiet window in ms")
    parser.add_argument("--settle", type=int, default=20, help="Settle delay before ready in ms")
    parser.add_argument("--polling", action="store_true", help="Poll instead of using OS notifications")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    cwd = Path(args.cwd).resolve()
    if not cwd.is_dir():
        logger.error(f"Not a directory: {cwd}")
        return 1

    config = WatchConfig(
        cwd=cwd,
        debounce_ms=args.debounce,
        settle_ms=args.settle,
        use_polling=args.polling,
    )

    logger.info(f"starting glob for: {args.patterns}")
    shutdown = GracefulShutdown()
    reporter = ProgressReporter()

    with GlobWatcher(args.patterns, config) as watcher:
        reporter.attach(watcher)
        watcher.start()
        shutdown.stopped.wait()

    watcher.join(timeout=5.0)
    logger.info("Watcher stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Initial pattern expansion and the ready signal."""

import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional

from .exceptions import BootstrapError
from .loop import EventLoop, TimerHandle
from .patterns import GlobMatcher, is_marked_directory, strip_marker
from .registry import WatchRegistry

logger = logging.getLogger(__name__)


class Bootstrapper:
    """
    Arms everything the patterns match, then announces readiness.

    There is no completion signal for native watch setup, so ``ready`` is
    emitted once the registry has seen no arming or disarming for the
    settle delay.
    """

    def __init__(
        self,
        cwd: Path,
        matcher: GlobMatcher,
        registry: WatchRegistry,
        loop: EventLoop,
        on_ready: Callable[[], None],
        report_error: Callable[[BaseException, Optional[Path]], None],
        settle_ms: int = 20,
    ):
        """
        Initialize the bootstrapper.

        Args:
            cwd: Absolute base directory of the patterns
            matcher: Patterns to expand
            registry: Registry to arm matches in
            loop: Loop the settle timer runs on
            on_ready: Called once when the initial pass has settled
            report_error: Receives a failure that aborts the bootstrap
            settle_ms: Required quiet period in milliseconds
        """
        self.cwd = cwd
        self.matcher = matcher
        self.registry = registry
        self.loop = loop
        self.on_ready = on_ready
        self.report_error = report_error
        self.settle_ms = settle_ms
        self._settle_timer: Optional[TimerHandle] = None
        self.matched = 0

    def run(self) -> None:
        """Expand the patterns, arm every match and the base directory."""
        started = time.monotonic()
        logger.info(f"Expanding {self.matcher.patterns} in {self.cwd}")

        try:
            for name in self._expand():
                path = Path(os.path.abspath(os.path.join(self.cwd, strip_marker(name))))
                if is_marked_directory(name):
                    self.registry.arm_directory(path)
                else:
                    self.registry.arm_file(path)
                self.matched += 1

            self.registry.arm_directory(self.cwd)
        except Exception as e:
            logger.error(f"Initial watch setup failed: {e}")
            self.report_error(e, None)
            return

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.debug(f"Armed {self.matched} match(es) in {elapsed_ms:.1f}ms, settling")
        self._schedule_settle(self.settle_ms / 1000.0)

    def _expand(self):
        try:
            yield from self.matcher.expand(self.cwd)
        except OSError as e:
            raise BootstrapError(f"Cannot expand patterns in {self.cwd}: {e}", self.cwd) from e

    def _schedule_settle(self, delay: float) -> None:
        self._settle_timer = self.loop.call_later(delay, self._check_settled)

    def _check_settled(self) -> None:
        if self.registry.closed:
            return

        quiet_for = self.registry.clock() - self.registry.last_activity
        settle = self.settle_ms / 1000.0
        if quiet_for < settle:
            self._schedule_settle(settle - quiet_for)
            return

        self._settle_timer = None
        self.on_ready()

    def cancel(self) -> None:
        """Drop a pending settle check."""
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None

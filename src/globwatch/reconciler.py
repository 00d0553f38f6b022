"""Keeps the registry in sync with the contents of watched directories."""

import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple

from .exceptions import ProbeError, SubscriptionError, WatcherError
from .listing import DirectoryLister, path_exists
from .loop import EventLoop
from .patterns import is_marked_directory, strip_marker
from .registry import WatchRegistry

logger = logging.getLogger(__name__)


def partition(directory: Path, names: List[str]) -> Tuple[Set[Path], Set[Path]]:
    """
    Split listed names into absolute file and directory paths.

    Args:
        directory: Directory the names were listed from
        names: Names with directories marked by a trailing separator

    Returns:
        (files, directories)
    """
    files: Set[Path] = set()
    dirs: Set[Path] = set()

    for name in names:
        path = Path(os.path.abspath(os.path.join(directory, strip_marker(name))))
        if is_marked_directory(name):
            dirs.add(path)
        else:
            files.add(path)

    return files, dirs


class DirectoryReconciler:
    """
    Diffs a fresh listing of a directory against the registry.

    Entries that disappeared are disarmed, new entries are armed. New
    subdirectories are armed one at a time, and arming a directory
    reconciles it in turn before the next one starts.
    """

    def __init__(
        self,
        registry: WatchRegistry,
        lister: DirectoryLister,
        loop: EventLoop,
        report_error: Callable[[BaseException, Optional[Path]], None],
        probe: Callable[[Path], bool] = path_exists,
    ):
        """
        Initialize the reconciler.

        Args:
            registry: Registry to keep in sync
            lister: Source of fresh directory listings
            loop: Loop that scheduled reconciliations run on
            report_error: Receives failures that should reach listeners
            probe: Existence check used by the failure policy
        """
        self.registry = registry
        self.lister = lister
        self.loop = loop
        self.report_error = report_error
        self.probe = probe
        self._scheduled: Set[Path] = set()

    def schedule(self, directory: Path) -> None:
        """
        Queue a reconciliation of a directory on the loop.

        Requests for a directory that is already queued are folded into
        the queued one, which reads the directory when it runs.
        """
        if directory in self._scheduled:
            return
        self._scheduled.add(directory)
        self.loop.submit(self._run_scheduled, directory)

    def _run_scheduled(self, directory: Path) -> None:
        self._scheduled.discard(directory)
        if self.registry.closed or not self.registry.is_directory(directory):
            return
        self.reconcile(directory)

    def reconcile(self, directory: Path) -> None:
        """
        Bring the registry entries below a directory up to date.

        Failures are reported against the directory, unless the directory
        itself is gone: its removal is reported by its parent instead.

        Args:
            directory: Absolute path of an armed directory
        """
        try:
            self._reconcile(directory)
        except (WatcherError, OSError) as e:
            self._handle_failure(directory, e)

    def _reconcile(self, directory: Path) -> None:
        names = self.lister.list_children(directory)
        found_files, found_dirs = partition(directory, names)

        existing_files = self.registry.files_in(directory)
        existing_dirs = self.registry.directories_in(directory)

        # Removals first, so a path that changed type is never in both tables.
        for path in sorted(existing_files - found_files):
            self.registry.disarm_file(path)
        for path in sorted(existing_dirs - found_dirs):
            self.registry.disarm_directory(path)

        for path in sorted(found_files - existing_files):
            self._arm(path, self.registry.arm_file)
        for path in sorted(found_dirs - existing_dirs):
            self._arm(path, self.registry.arm_directory)

    def _arm(self, path: Path, arm: Callable[[Path], bool]) -> None:
        try:
            arm(path)
        except SubscriptionError:
            if self.probe(path):
                raise
            logger.debug(f"{path} vanished before it could be watched")

    def _handle_failure(self, directory: Path, error: BaseException) -> None:
        try:
            if self.probe(directory):
                logger.error(f"Failed to reconcile {directory}: {error}")
                self.report_error(error, directory)
            else:
                logger.debug(f"Ignoring failure for vanished directory {directory}: {error}")
        except ProbeError:
            if self.registry.is_directory(directory):
                self.report_error(error, directory)

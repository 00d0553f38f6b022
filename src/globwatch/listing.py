"""Directory listing and existence checks used by the watch engine."""

import logging
import os
from pathlib import Path
from typing import List

from .exceptions import ListingError, ProbeError
from .patterns import GlobMatcher, mark_directory

logger = logging.getLogger(__name__)


def path_exists(path: Path) -> bool:
    """
    Check whether a path currently exists.

    Unlike ``os.path.exists``, failures other than "not found" are not
    hidden.

    Args:
        path: Absolute path to check

    Returns:
        True if the path exists

    Raises:
        ProbeError: If the filesystem could not answer
    """
    try:
        os.stat(path)
        return True
    except (FileNotFoundError, NotADirectoryError):
        return False
    except OSError as e:
        raise ProbeError(f"Cannot check existence of {path}: {e}", path) from e


class DirectoryLister:
    """
    Lists the immediate children of a directory that match the patterns.

    Some platforms briefly report an empty directory right after a change.
    With ``confirm`` enabled the directory is read until two consecutive
    passes agree on the number of entries.
    """

    def __init__(
        self,
        matcher: GlobMatcher,
        confirm: bool = True,
        max_attempts: int = 5,
    ):
        """
        Initialize the lister.

        Args:
            matcher: Patterns the children are matched against
            confirm: Whether to confirm listings with a second pass
            max_attempts: Maximum number of passes when confirming
        """
        self.matcher = matcher
        self.confirm = confirm
        self.max_attempts = max_attempts

    def list_children(self, directory: Path) -> List[str]:
        """
        List matching children of a directory, one level deep.

        Args:
            directory: Absolute path of the directory

        Returns:
            Sorted names relative to ``directory``; directories end with
            the path separator

        Raises:
            ListingError: If the directory cannot be read
        """
        current = self._read(directory)
        if not self.confirm:
            return current

        for _ in range(self.max_attempts - 1):
            previous, current = current, self._read(directory)
            if len(previous) == len(current):
                return current
            logger.debug(
                f"Listing of {directory} changed from {len(previous)} to "
                f"{len(current)} entries, reading again"
            )

        return current

    def _read(self, directory: Path) -> List[str]:
        names = []
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    try:
                        is_dir = entry.is_dir()
                    except OSError:
                        # Entry vanished while listing.
                        continue
                    if self.matcher.matches(entry.name, is_dir):
                        names.append(mark_directory(entry.name) if is_dir else entry.name)
        except OSError as e:
            raise ListingError(f"Cannot list {directory}: {e}", directory) from e

        return sorted(names)

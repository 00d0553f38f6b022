"""Glob pattern matching and expansion."""

import fnmatch
import glob
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

GLOBSTAR = "**"
NEGATION = "!"


def mark_directory(name: str) -> str:
    """Append the directory marker to a relative name."""
    return name if is_marked_directory(name) else name + os.sep


def is_marked_directory(name: str) -> bool:
    """Check whether a listed name carries the directory marker."""
    return name.endswith(os.sep) or (os.altsep is not None and name.endswith(os.altsep))


def strip_marker(name: str) -> str:
    """Remove the directory marker from a listed name."""
    return name.rstrip(os.sep + (os.altsep or ""))


def _split(path: str) -> Tuple[str, ...]:
    normalized = path.replace(os.sep, "/")
    if os.altsep:
        normalized = normalized.replace(os.altsep, "/")
    return tuple(part for part in normalized.split("/") if part and part != ".")


@dataclass(frozen=True)
class CompiledPattern:
    """A glob pattern split into path segments."""
    source: str
    segments: Tuple[str, ...]
    directory_only: bool = False

    @classmethod
    def compile(cls, pattern: str) -> "CompiledPattern":
        return cls(
            source=pattern,
            segments=_split(pattern),
            directory_only=pattern.endswith(("/", os.sep)),
        )

    def matches(self, relpath: str, is_dir: bool = False) -> bool:
        if self.directory_only and not is_dir:
            return False
        return _match_segments(self.segments, _split(relpath))


def _match_segment(pattern: str, name: str) -> bool:
    # Wildcards never match a leading dot, as in shell globbing.
    if name.startswith(".") and not pattern.startswith("."):
        return False
    return fnmatch.fnmatchcase(name, pattern)


def _match_segments(pattern: Tuple[str, ...], parts: Tuple[str, ...]) -> bool:
    if not pattern:
        return not parts

    head = pattern[0]
    if head == GLOBSTAR:
        if _match_segments(pattern[1:], parts):
            return True
        return bool(parts) and not parts[0].startswith(".") and _match_segments(pattern, parts[1:])

    if not parts:
        return False
    return _match_segment(head, parts[0]) and _match_segments(pattern[1:], parts[1:])


class GlobMatcher:
    """
    Matches relative paths against a set of glob patterns.

    Supports ``*``, ``?``, ``[...]`` and ``**`` (any number of directories).
    Patterns starting with ``!`` exclude whatever they match. A trailing
    separator restricts a pattern to directories.
    """

    def __init__(self, patterns: Union[str, Sequence[str]]):
        """
        Initialize the matcher.

        Args:
            patterns: One pattern or a sequence of patterns

        Raises:
            ValueError: If no inclusive pattern is given
        """
        if isinstance(patterns, str):
            patterns = [patterns]

        self.patterns: List[str] = list(patterns)
        self._include: List[CompiledPattern] = []
        self._exclude: List[CompiledPattern] = []

        for pattern in self.patterns:
            if pattern.startswith(NEGATION):
                self._exclude.append(CompiledPattern.compile(pattern[1:]))
            else:
                self._include.append(CompiledPattern.compile(pattern))

        if not self._include:
            raise ValueError("At least one non-negated pattern must be provided")

    def matches(self, relpath: str, is_dir: bool = False) -> bool:
        """
        Check if a relative path is selected by the patterns.

        Args:
            relpath: Path relative to the directory the patterns apply to
            is_dir: Whether the path is a directory

        Returns:
            True if an inclusive pattern matches and no exclusion does
        """
        relpath = strip_marker(relpath)
        if not any(p.matches(relpath, is_dir) for p in self._include):
            return False
        return not self.is_excluded(relpath, is_dir)

    def is_excluded(self, relpath: str, is_dir: bool = False) -> bool:
        """Check if a relative path is removed by a negated pattern."""
        relpath = strip_marker(relpath)
        return any(p.matches(relpath, is_dir) for p in self._exclude)

    def expand(self, base: Path) -> Iterator[str]:
        """
        Expand the patterns over the whole tree below a base directory.

        Matches are yielded as they are found, relative to ``base``, with
        directories marked by a trailing separator. Each match is yielded
        once even when several patterns select it.

        Args:
            base: Directory the patterns are relative to

        Yields:
            Marked relative paths
        """
        seen = set()

        for compiled in self._include:
            for match in glob.iglob(compiled.source, root_dir=base, recursive=True):
                name = strip_marker(match)
                if not name:
                    continue

                is_dir = os.path.isdir(os.path.join(base, name))
                if compiled.directory_only and not is_dir:
                    continue
                if self.is_excluded(name, is_dir):
                    continue

                marked = mark_directory(name) if is_dir else name
                if marked in seen:
                    continue
                seen.add(marked)

                logger.debug(f"Pattern {compiled.source!r} matched {marked}")
                yield marked

    def __repr__(self) -> str:
        return f"GlobMatcher({self.patterns!r})"

"""Tests for listing module."""

import os
import pytest
from pathlib import Path

from globwatch.exceptions import ListingError, ProbeError
from globwatch.listing import DirectoryLister, path_exists
from globwatch.patterns import GlobMatcher


class TestPathExists:
    """Tests for path_exists function."""

    def test_existing_file(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")
        assert path_exists(target) is True

    def test_missing_file(self, tmp_path):
        assert path_exists(tmp_path / "missing") is False

    def test_parent_is_a_file(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")
        assert path_exists(target / "child") is False

    def test_other_errors_raise(self, tmp_path, monkeypatch):
        def denied(path):
            raise PermissionError("denied")

        monkeypatch.setattr(os, "stat", denied)
        with pytest.raises(ProbeError) as exc_info:
            path_exists(tmp_path)
        assert exc_info.value.path == tmp_path


class TestDirectoryLister:
    """Tests for DirectoryLister class."""

    def test_list_children(self, tmp_path):
        (tmp_path / "b.txt").write_text("b")
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "deep.txt").write_text("d")

        lister = DirectoryLister(GlobMatcher("**/*"))

        assert lister.list_children(tmp_path) == ["a.txt", "b.txt", "sub" + os.sep]

    def test_patterns_apply_to_names(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "a.log").write_text("a")
        (tmp_path / ".hidden.txt").write_text("h")

        lister = DirectoryLister(GlobMatcher(["*.txt"]))

        assert lister.list_children(tmp_path) == ["a.txt"]

    def test_missing_directory(self, tmp_path):
        lister = DirectoryLister(GlobMatcher("*"))

        with pytest.raises(ListingError) as exc_info:
            lister.list_children(tmp_path / "missing")
        assert exc_info.value.path == tmp_path / "missing"

    def test_rereads_until_counts_agree(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        reads = []

        class FlakyLister(DirectoryLister):
            def _read(self, directory):
                reads.append(directory)
                if len(reads) == 1:
                    return []
                return super()._read(directory)

        lister = FlakyLister(GlobMatcher("*"))

        assert lister.list_children(tmp_path) == ["a.txt"]
        assert len(reads) == 3

    def test_attempts_are_bounded(self, tmp_path):
        reads = []

        class ChangingLister(DirectoryLister):
            def _read(self, directory):
                reads.append(directory)
                return ["x"] * len(reads)

        lister = ChangingLister(GlobMatcher("*"), max_attempts=4)

        assert lister.list_children(tmp_path) == ["x"] * 4
        assert len(reads) == 4

    def test_without_confirmation_reads_once(self, tmp_path):
        reads = []

        class CountingLister(DirectoryLister):
            def _read(self, directory):
                reads.append(directory)
                return super()._read(directory)

        CountingLister(GlobMatcher("*"), confirm=False).list_children(tmp_path)

        assert len(reads) == 1

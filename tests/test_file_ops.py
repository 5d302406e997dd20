"""
Unit Tests for File Operations

Tests file hashing, change detection, copying and directory helpers.

Author: SyncManager Project
License: MIT
"""

import pytest
from pathlib import Path

from sync_manager.utils import file_ops
from sync_manager.utils.file_ops import (
    calculate_file_hash,
    try_file_hash,
    has_file_changed,
    copy_file,
    ensure_directory
)


class TestFileHashing:
    """Test suite for file hashing functions."""

    def test_calculate_hash_sha256(self, tmp_path):
        """Test SHA256 hash calculation."""
        test_file = tmp_path / "test.txt"
        test_file.write_bytes(b"Hello, World!")

        hash_value = calculate_file_hash(str(test_file), algorithm="sha256")

        # SHA256 of "Hello, World!"
        expected = "dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"
        assert hash_value == expected

    def test_calculate_hash_md5(self, tmp_path):
        """Test MD5 hash calculation."""
        test_file = tmp_path / "test.txt"
        test_file.write_text("test content")

        hash_value = calculate_file_hash(test_file, algorithm="md5")

        assert len(hash_value) == 32  # MD5 is 32 hex chars

    def test_hash_nonexistent_file_raises_error(self):
        """Test that hashing non-existent file raises error."""
        with pytest.raises(FileNotFoundError):
            calculate_file_hash("/nonexistent/file.txt")

    def test_unsupported_algorithm_raises_error(self, tmp_path):
        """Test unknown algorithm names are rejected."""
        test_file = tmp_path / "test.txt"
        test_file.write_text("x")

        with pytest.raises(ValueError):
            calculate_file_hash(test_file, algorithm="not-a-hash")

    def test_small_chunks_give_same_digest(self, tmp_path):
        """Test chunked streaming does not change the digest."""
        test_file = tmp_path / "large.bin"
        test_file.write_bytes(b'A' * (1024 * 1024) + b'tail')

        assert calculate_file_hash(test_file, chunk_size=7) == calculate_file_hash(test_file)

    def test_try_file_hash_reports_failure(self, tmp_path):
        """Test try_file_hash returns an error instead of raising."""
        success, digest, error = try_file_hash(tmp_path / "missing.txt")

        assert success is False
        assert digest is None
        assert "missing.txt" in error


class TestChangeDetection:
    """Test suite for has_file_changed."""

    def test_missing_destination_is_changed(self, tmp_path):
        """Test a new file counts as changed."""
        source = tmp_path / "a.txt"
        source.write_text("X")

        assert has_file_changed(source, tmp_path / "nope.txt") is True

    def test_identical_files_unchanged(self, tmp_path):
        """Test identical content is not changed."""
        source = tmp_path / "a.txt"
        dest = tmp_path / "b.txt"
        source.write_text("same content")
        dest.write_text("same content")

        assert has_file_changed(source, dest) is False

    def test_size_difference_skips_hashing(self, tmp_path, monkeypatch):
        """Test different sizes short-circuit before hashing."""
        source = tmp_path / "a.txt"
        dest = tmp_path / "b.txt"
        source.write_text("short")
        dest.write_text("much longer content")

        def fail_hash(*args, **kwargs):
            raise AssertionError("hashing should not happen")

        monkeypatch.setattr(file_ops, "try_file_hash", fail_hash)

        assert has_file_changed(source, dest) is True

    def test_same_size_different_content(self, tmp_path):
        """Test equal sizes fall back to digest comparison."""
        source = tmp_path / "a.txt"
        dest = tmp_path / "b.txt"
        source.write_text("AAAA")
        dest.write_text("AAAB")

        assert has_file_changed(source, dest) is True

    def test_hash_failure_counts_as_changed(self, tmp_path, monkeypatch):
        """Test an unreadable file is treated as changed."""
        source = tmp_path / "a.txt"
        dest = tmp_path / "b.txt"
        source.write_text("same")
        dest.write_text("same")

        def denied(path, chunk_size=file_ops.DEFAULT_CHUNK_SIZE):
            if Path(path) == dest:
                return False, None, "Permission denied"
            return True, "digest", None

        monkeypatch.setattr(file_ops, "try_file_hash", denied)

        assert has_file_changed(source, dest) is True


class TestUtilityFunctions:
    """Test suite for utility functions."""

    def test_copy_file_overwrites(self, tmp_path):
        """Test copy replaces destination content."""
        source = tmp_path / "a.txt"
        dest = tmp_path / "b.txt"
        source.write_text("new")
        dest.write_text("old")

        copy_file(source, dest)

        assert dest.read_text() == "new"

    def test_ensure_directory(self, tmp_path):
        """Test directory creation."""
        new_dir = tmp_path / "new" / "nested" / "directory"

        success, error = ensure_directory(str(new_dir))

        assert success is True
        assert error is None
        assert new_dir.is_dir()

    def test_ensure_directory_blocked_by_file(self, tmp_path):
        """Test a file in the way is reported, not raised."""
        blocker = tmp_path / "blocker"
        blocker.write_text("I am a file")

        success, error = ensure_directory(blocker / "child")

        assert success is False
        assert "Cannot create directory" in error


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

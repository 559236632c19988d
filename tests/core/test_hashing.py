"""Tests for content hashing."""

from __future__ import annotations

import hashlib
from pathlib import Path

from sporesync.core.hashing import HASH_BLOCK_SIZE, compute_file_hash


class TestHashing:
    """Tests for compute_file_hash."""

    def test_file_hash_matches_sha256(self, tmp_path: Path) -> None:
        """File hash should be the hex SHA-256 of the content."""
        data = b"x" * (HASH_BLOCK_SIZE * 2 + 7)
        path = tmp_path / "big.bin"
        path.write_bytes(data)
        assert compute_file_hash(path) == hashlib.sha256(data).hexdigest()

    def test_small_file(self, tmp_path: Path) -> None:
        """A file smaller than one block hashes in a single read."""
        path = tmp_path / "a.txt"
        path.write_bytes(b"hello")
        assert compute_file_hash(path) == hashlib.sha256(b"hello").hexdigest()

    def test_empty_file(self, tmp_path: Path) -> None:
        """Empty file should hash like empty content."""
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert compute_file_hash(path) == hashlib.sha256(b"").hexdigest()

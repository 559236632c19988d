"""Shared fixtures for sporesync tests.

The remote side is a LocalFSRemote over a temporary directory, so every
test runs without an SSH server.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from sporesync.core.config import MonitorConfig, PathConfig, Settings
from sporesync.remote.localfs import LocalFSRemote
from sporesync.sync.service import SyncService


@pytest.fixture
def remote_base(tmp_path: Path) -> Path:
    """Directory playing the role of the remote "/" (with /data inside)."""
    base = tmp_path / "remote"
    (base / "data").mkdir(parents=True)
    return base


@pytest.fixture
def remote(remote_base: Path) -> LocalFSRemote:
    """Remote port over the temporary remote directory."""
    return LocalFSRemote(remote_base)


@pytest.fixture
def local_root(tmp_path: Path) -> Path:
    """Local mirror root (not created up front)."""
    return tmp_path / "mirror"


@pytest.fixture
def make_remote_file(remote_base: Path) -> Callable[..., Path]:
    """Create a file on the remote side.

    Usage:
        make_remote_file("/data/a.txt", size=100, mtime=1_000_000)
    """

    def _make(remote_path: str, size: int = 0, mtime: float | None = None, content: bytes | None = None) -> Path:
        target = remote_base / remote_path.lstrip("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        data = content if content is not None else bytes(i % 251 for i in range(size))
        target.write_bytes(data)
        if mtime is not None:
            os.utime(target, (mtime, mtime))
        return target

    return _make


@pytest.fixture
def settings(remote_base: Path, local_root: Path) -> Settings:
    """Settings for a local remote with /data mirrored onto local_root."""
    return Settings(
        paths=PathConfig(remote_path="/data", local_path=str(local_root)),
        monitor=MonitorConfig(
            check_interval_seconds=0.05,
            error_retry_delay_seconds=0.05,
            chunk_size=16,
        ),
        remote_type="local",
        local_remote_root=str(remote_base),
    )


@pytest.fixture
def service(settings: Settings, remote: LocalFSRemote) -> Iterator[SyncService]:
    """Sync service over the local remote, closed after the test."""
    svc = SyncService(settings, remote)
    yield svc
    svc.close()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it holds or the timeout expires."""

    def _wait(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait

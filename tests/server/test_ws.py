"""Tests for the progress WebSocket hub."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient

from sporesync.server.app import create_app
from sporesync.server.ws import ProgressHub
from sporesync.sync.service import SyncService
from sporesync.sync.types import DirectoryProgress, FileProgress


class TestProgressHub:
    """Tests for ProgressHub without a server."""

    def test_publish_without_loop_keeps_history(self) -> None:
        """Events published before a loop is bound are kept in history only."""
        hub = ProgressHub(history_size=2)
        hub.publish(FileProgress("a.txt", 1, 3))
        hub.publish(FileProgress("a.txt", 2, 3))
        hub.publish(DirectoryProgress("Directory: data", 1, 1))

        recent = hub.recent()
        assert [m["type"] for m in recent] == ["file_progress", "directory_progress"]
        assert hub.connection_count == 0


class TestProgressWebSocket:
    """Tests for the /ws/progress endpoint."""

    def test_transfer_progress_is_pushed(
        self, service: SyncService, make_remote_file: Any, tmp_path: Path
    ) -> None:
        """A transfer started through the API pushes its progress to dashboards."""
        make_remote_file("/data/a.txt", size=20)
        hub = ProgressHub()
        app = create_app(service, hub=hub)

        with TestClient(app) as client, client.websocket_connect("/ws/progress") as ws:
            response = client.post(
                "/api/files/download",
                json={"remote_path": "/data/a.txt", "local_path": str(tmp_path / "a.txt")},
            )
            assert response.json()["outcome"] == "success"

            first = ws.receive_json()
            second = ws.receive_json()

        assert first["type"] == "file_progress"
        assert first["file_name"] == "a.txt"
        assert first["bytes_transferred"] == 16
        assert second["bytes_transferred"] == 20
        assert second["percentage"] == 100.0
        assert len(hub.recent()) == 2

    def test_recent_progress_route(self, service: SyncService, make_remote_file: Any, tmp_path: Path) -> None:
        """/api/sync/progress returns the hub's recent messages."""
        make_remote_file("/data/a.txt", size=5)
        with TestClient(create_app(service)) as client:
            assert client.get("/api/sync/progress").json() == []
            client.post(
                "/api/files/download",
                json={"remote_path": "/data/a.txt", "local_path": str(tmp_path / "a.txt")},
            )
            recent = client.get("/api/sync/progress").json()

        assert [(m["type"], m["bytes_transferred"]) for m in recent] == [("file_progress", 5)]

    def test_listener_removed_on_shutdown(self, service: SyncService, make_remote_file: Any, tmp_path: Path) -> None:
        """After shutdown the hub no longer receives service events."""
        make_remote_file("/data/a.txt", size=5)
        hub = ProgressHub()
        with TestClient(create_app(service, hub=hub)):
            pass

        service.download_file("/data/a.txt", tmp_path / "a.txt")
        assert hub.recent() == []

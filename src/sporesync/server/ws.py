"""WebSocket hub for real-time transfer progress.

This module provides:
- ProgressHub: Fans progress events out to connected dashboards
- router: The /ws/progress endpoint

Architecture:
    TransferExecutor (worker threads) ──publish──► ProgressHub ──ws──► Dashboards

Events are produced on worker threads and delivered on the server's event
loop. Delivery is at-least-once per chunk/child with no replay.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

if TYPE_CHECKING:
    from sporesync.sync.types import ProgressEvent

logger = logging.getLogger(__name__)


class ProgressHub:
    """Central hub for progress WebSocket connections.

    Thread-safe for publishing from worker threads; connection bookkeeping
    happens on the event loop.
    """

    def __init__(self, history_size: int = 100) -> None:
        """Initialize the hub.

        Args:
            history_size: Number of recent events kept for status queries.
        """
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._recent: deque[dict[str, Any]] = deque(maxlen=history_size)

    @property
    def connection_count(self) -> int:
        """Get the number of connected dashboards."""
        return len(self._connections)

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop that delivers messages."""
        self._loop = loop

    def recent(self) -> list[dict[str, Any]]:
        """Get the most recent progress messages, oldest first."""
        return list(self._recent)

    async def connect(self, websocket: WebSocket) -> None:
        """Register a dashboard connection.

        Args:
            websocket: The WebSocket connection.
        """
        await websocket.accept()
        self._loop = asyncio.get_running_loop()

        async with self._lock:
            self._connections.add(websocket)

        logger.info("Progress dashboard connected (%d total)", len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        """Handle dashboard disconnection.

        Args:
            websocket: The WebSocket that disconnected.
        """
        async with self._lock:
            self._connections.discard(websocket)

        logger.info("Progress dashboard disconnected")

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to every connected dashboard.

        Args:
            message: JSON-serializable message.
        """
        text = json.dumps(message)
        async with self._lock:
            disconnected = []
            for ws in self._connections:
                try:
                    if ws.client_state == WebSocketState.CONNECTED:
                        await ws.send_text(text)
                except Exception:
                    disconnected.append(ws)

            for ws in disconnected:
                self._connections.discard(ws)

    def publish(self, event: ProgressEvent) -> None:
        """Publish a progress event from any thread.

        Args:
            event: File or directory progress event.
        """
        message = event.to_dict()
        self._recent.append(message)

        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop bound, progress event not pushed")
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(message), loop)


# WebSocket router
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/progress")
async def websocket_progress(websocket: WebSocket) -> None:
    """WebSocket endpoint for progress dashboards.

    Message format (server -> dashboard):
        {"type": "file_progress", "file_name": ..., "bytes_transferred": ...,
         "total_bytes": ..., "percentage": ..., "timestamp": ...}
        {"type": "directory_progress", "label": ..., "items_processed": ...,
         "items_total": ..., "timestamp": ...}

    Args:
        websocket: The WebSocket connection.
    """
    hub: ProgressHub = websocket.app.state.hub

    await hub.connect(websocket)

    try:
        while True:
            # Dashboards don't send messages, just wait for disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception as e:
        logger.exception("Error in progress WebSocket: %s", e)
        await hub.disconnect(websocket)

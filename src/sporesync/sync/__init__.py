"""Sync module - Remote-state reconciliation and transfer engine.

This module provides:
- types: TrackedItem, QueueEntry, progress events, TransferResult
- registry: ItemRegistry (single source of truth per remote path)
- queue: SyncQueue (FIFO with deduplicating enqueue)
- monitor: PathMonitor (polling loop over the remote tree)
- transfer: TransferExecutor (chunked file and directory copy)
- coordinator: SyncCoordinator (queue drain)
- service: SyncService (wires everything around one remote session)

Data flow:
    PathMonitor -> ItemRegistry -> SyncQueue -> SyncCoordinator
                -> TransferExecutor -> ItemRegistry
"""

from sporesync.sync.coordinator import CoordinatorState, CoordinatorStats, SyncCoordinator
from sporesync.sync.monitor import MonitorState, PathMonitor, PollResult
from sporesync.sync.queue import SyncQueue
from sporesync.sync.registry import ItemRegistry
from sporesync.sync.service import SyncService
from sporesync.sync.transfer import TransferExecutor
from sporesync.sync.types import (
    CancellationToken,
    DirectoryProgress,
    FileProgress,
    ItemStatus,
    ProgressEvent,
    ProgressSink,
    QueueEntry,
    QueueStatus,
    SyncOperation,
    TrackedItem,
    TransferDirection,
    TransferOutcome,
    TransferResult,
)

__all__ = [
    # Coordinator
    "CoordinatorState",
    "CoordinatorStats",
    "SyncCoordinator",
    # Monitor
    "MonitorState",
    "PathMonitor",
    "PollResult",
    # Queue / registry
    "ItemRegistry",
    "SyncQueue",
    # Service
    "SyncService",
    # Transfer
    "TransferExecutor",
    # Types
    "CancellationToken",
    "DirectoryProgress",
    "FileProgress",
    "ItemStatus",
    "ProgressEvent",
    "ProgressSink",
    "QueueEntry",
    "QueueStatus",
    "SyncOperation",
    "TrackedItem",
    "TransferDirection",
    "TransferOutcome",
    "TransferResult",
]

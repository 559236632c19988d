"""Exception hierarchy shared by the remote ports and the sync core."""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for sync errors."""


class RemoteAccessError(SyncError):
    """The remote host could not be reached or the session dropped."""


class RemoteNotFoundError(RemoteAccessError):
    """A remote path does not exist (or vanished between list and read)."""


class RemotePermissionError(RemoteAccessError):
    """The remote host refused access to a path."""


class TransferCancelledError(SyncError):
    """Raised internally when a cancellation token fires mid-transfer."""

"""Remote file API routes: listing and explicit transfers.

Transfers run on the request's worker thread and report progress through
the progress hub. A failed or cancelled transfer still returns 200; the
outcome is in the response body.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sporesync.server.api.deps import get_service, remote_errors
from sporesync.server.schemas import (
    DownloadRequest,
    RemoteEntryResponse,
    TransferResponse,
    UploadRequest,
    remote_entry_to_response,
    transfer_to_response,
)
from sporesync.sync.service import SyncService

router = APIRouter(prefix="/api", tags=["files"])


@router.get("/files", response_model=list[RemoteEntryResponse])
def list_files(
    service: SyncService = Depends(get_service),
    path: str | None = None,
) -> list[RemoteEntryResponse]:
    """List a remote directory (the monitored root by default)."""
    with remote_errors():
        entries = service.list_remote(path)
    return [remote_entry_to_response(e) for e in entries]


@router.post("/files/upload", response_model=TransferResponse)
def upload_file(
    request: UploadRequest,
    service: SyncService = Depends(get_service),
) -> TransferResponse:
    """Upload a local file to a remote path."""
    result = service.upload_file(request.local_path, request.remote_path)
    return transfer_to_response(result)


@router.post("/files/download", response_model=TransferResponse)
def download_file(
    request: DownloadRequest,
    service: SyncService = Depends(get_service),
) -> TransferResponse:
    """Download a remote file."""
    with remote_errors():
        result = service.download_file(request.remote_path, request.local_path)
    return transfer_to_response(result)


@router.post("/files/upload-directory", response_model=TransferResponse)
def upload_directory(
    request: UploadRequest,
    service: SyncService = Depends(get_service),
) -> TransferResponse:
    """Upload a local directory tree to a remote directory."""
    result = service.upload_directory(request.local_path, request.remote_path)
    return transfer_to_response(result)


@router.post("/files/download-directory", response_model=TransferResponse)
def download_directory(
    request: DownloadRequest,
    service: SyncService = Depends(get_service),
) -> TransferResponse:
    """Download a remote directory tree."""
    with remote_errors():
        result = service.download_directory(request.remote_path, request.local_path)
    return transfer_to_response(result)

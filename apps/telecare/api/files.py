from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from telecare.api.dependencies import require_user_id
from telecare.connectors.cloudinary_connector import CloudinaryBlobStore
from telecare.core.dependencies import get_blob_store
from telecare.schemas.files import StoredFilesResponse

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("", response_model=StoredFilesResponse)
def list_stored_files(
    max_results: int = Query(default=50, ge=1, le=500),
    _user_id: str = Depends(require_user_id),
    blob_store: CloudinaryBlobStore = Depends(get_blob_store),
) -> StoredFilesResponse:
    """Files available for re-sharing into a conversation."""
    return StoredFilesResponse(files=blob_store.list_files(max_results=max_results))

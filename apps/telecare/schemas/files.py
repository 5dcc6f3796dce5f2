from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class StoredBlob(BaseModel):
    """What the blob store hands back after an upload or lookup."""

    url: str
    resolved_type: str
    resolved_filename: str
    public_id: str


class StoredFilesResponse(BaseModel):
    files: List[StoredBlob]


class Report(BaseModel):
    id: str
    patient_id: str
    filename: str
    file_url: str
    blob_public_id: str
    content_type: str
    created_at: datetime
    blob_resource_type: Optional[str] = None


class ReportListResponse(BaseModel):
    reports: List[Report]


__all__ = ["Report", "ReportListResponse", "StoredBlob", "StoredFilesResponse"]

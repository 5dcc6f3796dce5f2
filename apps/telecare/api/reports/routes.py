from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from telecare.api.dependencies import require_user_id
from telecare.core.dependencies import get_report_service
from telecare.schemas.files import Report, ReportListResponse
from telecare.services.reports import ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("/upload", response_model=Report, status_code=status.HTTP_201_CREATED)
async def upload_report(
    file: UploadFile = File(...),
    user_id: str = Depends(require_user_id),
    svc: ReportService = Depends(get_report_service),
) -> Report:
    data = await file.read()
    return await run_in_threadpool(
        svc.upload, user_id, data, file.filename or "", file.content_type
    )


@router.get("", response_model=ReportListResponse)
def list_reports(
    user_id: str = Depends(require_user_id),
    svc: ReportService = Depends(get_report_service),
) -> ReportListResponse:
    return ReportListResponse(reports=svc.list_for_patient(user_id))


@router.delete("/{report_id}")
def delete_report(
    report_id: str,
    user_id: str = Depends(require_user_id),
    svc: ReportService = Depends(get_report_service),
) -> dict[str, object]:
    blob_removed = svc.delete(report_id, user_id)
    return {"message": "Report deleted successfully", "blob_removed": blob_removed}

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from telecare.api.dependencies import require_user_id
from telecare.core.dependencies import get_user_directory
from telecare.core.exceptions import ForbiddenError
from telecare.schemas.users import (
    DoctorDirectoryResponse,
    DoctorListResponse,
    DoctorStats,
    UserRole,
)
from telecare.services.users import UserDirectory

router = APIRouter(prefix="/api/doctors", tags=["doctors"])


async def require_admin(
    user_id: str = Depends(require_user_id),
    directory: UserDirectory = Depends(get_user_directory),
) -> str:
    profile = await run_in_threadpool(directory.get_user, user_id)
    if profile is None or profile.role != UserRole.admin:
        raise ForbiddenError("Admin access required.")
    return user_id


@router.get("/verified", response_model=DoctorListResponse)
async def list_verified_doctors(
    _user_id: str = Depends(require_user_id),
    directory: UserDirectory = Depends(get_user_directory),
) -> DoctorListResponse:
    """Doctors a patient may start a conversation with."""
    doctors = await run_in_threadpool(directory.list_doctors, True)
    return DoctorListResponse(count=len(doctors), data=doctors)


@router.get("/unverified", response_model=DoctorListResponse)
async def list_unverified_doctors(
    _admin_id: str = Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
) -> DoctorListResponse:
    doctors = await run_in_threadpool(directory.list_doctors, False)
    return DoctorListResponse(count=len(doctors), data=doctors)


@router.get("", response_model=DoctorDirectoryResponse)
async def list_all_doctors(
    _admin_id: str = Depends(require_admin),
    directory: UserDirectory = Depends(get_user_directory),
) -> DoctorDirectoryResponse:
    doctors = await run_in_threadpool(directory.list_doctors)
    verified = sum(1 for d in doctors if d.is_verified)
    return DoctorDirectoryResponse(
        doctors=doctors,
        stats=DoctorStats(
            total=len(doctors), verified=verified, unverified=len(doctors) - verified
        ),
    )

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class UserRole(str, Enum):
    patient = "patient"
    doctor = "doctor"
    admin = "admin"


class UserProfile(BaseModel):
    """Read-only view of an identity owned by the auth/admin subsystem."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    role: UserRole = UserRole.patient
    is_verified: bool = False
    specialization: Optional[str] = None



class DoctorListResponse(BaseModel):
    count: int
    data: List[UserProfile]


class DoctorStats(BaseModel):
    total: int
    verified: int
    unverified: int


class DoctorDirectoryResponse(BaseModel):
    doctors: List[UserProfile]
    stats: DoctorStats


__all__ = [
    "DoctorDirectoryResponse",
    "DoctorListResponse",
    "DoctorStats",
    "UserProfile",
    "UserRole",
]

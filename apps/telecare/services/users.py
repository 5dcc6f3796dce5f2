"""Read-only lookups into the identities owned by the auth/admin subsystem."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from telecare.connectors.mongo_connector import storage_errors
from telecare.core.settings import settings
from telecare.schemas.users import UserProfile, UserRole

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = {"name": 1, "role": 1, "isVerified": 1, "is_verified": 1, "specialization": 1}
_VERIFIED = {"$or": [{"is_verified": True}, {"isVerified": True}]}
_UNVERIFIED = {"is_verified": {"$ne": True}, "isVerified": {"$ne": True}}


def _id_candidates(user_id: str) -> list[Any]:
    out: list[Any] = [user_id]
    if ObjectId.is_valid(user_id):
        out.insert(0, ObjectId(user_id))
    return out


def _coerce_role(raw: Any) -> UserRole:
    try:
        return UserRole(str(raw or "").strip().lower())
    except ValueError:
        logger.warning("Unknown user role %r; treating as patient", raw)
        return UserRole.patient


@dataclass
class UserDirectory:
    database: Database
    collection_name: str = settings.users_collection

    def __post_init__(self) -> None:
        self._users: Collection = self.database.get_collection(self.collection_name)

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        return self.get_profiles([user_id]).get(user_id)

    def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
        wanted = [u for u in dict.fromkeys(user_ids) if u]
        if not wanted:
            return {}
        candidates = [c for u in wanted for c in _id_candidates(u)]
        with storage_errors("load user profiles"):
            docs = list(self._users.find({"_id": {"$in": candidates}}, _PROFILE_FIELDS))
        return {str(doc["_id"]): self._to_profile(doc) for doc in docs}

    def list_doctors(self, verified: Optional[bool] = None) -> List[UserProfile]:
        """Doctors sorted by name; `verified` narrows to one side of verification."""
        query: Dict[str, Any] = {"role": UserRole.doctor.value}
        if verified is True:
            query.update(_VERIFIED)
        elif verified is False:
            query.update(_UNVERIFIED)
        with storage_errors("list doctors"):
            cursor = self._users.find(query, _PROFILE_FIELDS).sort("name", ASCENDING)
            return [self._to_profile(doc) for doc in cursor]

    @staticmethod
    def _to_profile(doc: Dict[str, Any]) -> UserProfile:
        verified = doc.get("is_verified", doc.get("isVerified", False))
        return UserProfile(
            id=str(doc["_id"]),
            name=doc.get("name") or "",
            role=_coerce_role(doc.get("role")),
            is_verified=bool(verified),
            specialization=doc.get("specialization"),
        )


__all__ = ["UserDirectory"]

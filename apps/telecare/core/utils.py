from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


def maybe_object_id(val: Any) -> Optional[ObjectId]:
    """Coerce `val` into an ObjectId, or None when it is not a valid id."""

    if not val:
        return None
    if isinstance(val, ObjectId):
        return val
    return ObjectId(val) if ObjectId.is_valid(val) else None


__all__ = ["maybe_object_id", "utcnow"]

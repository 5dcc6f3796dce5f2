"""Patient medical reports: blob upload plus a metadata record.

Deleting a report removes its record first; removing the blob afterwards is
best-effort and only logged when it fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from telecare.connectors.cloudinary_connector import CloudinaryBlobStore
from telecare.connectors.mongo_connector import storage_errors
from telecare.core.exceptions import ForbiddenError, InvalidContentError, NotFoundError
from telecare.core.settings import settings
from telecare.core.utils import maybe_object_id, utcnow
from telecare.schemas.files import Report

logger = logging.getLogger(__name__)


@dataclass
class ReportService:
    database: Database
    blob_store: CloudinaryBlobStore
    collection_name: str = settings.reports_collection

    def __post_init__(self) -> None:
        self._reports: Collection = self.database.get_collection(self.collection_name)

    def ensure_indexes(self) -> None:
        with storage_errors("create report indexes"):
            self._reports.create_index(
                [("patient_id", ASCENDING), ("created_at", DESCENDING)], name="patient_created"
            )

    def upload(
        self, patient_id: str, data: bytes, filename: str, content_type: str | None
    ) -> Report:
        if not data or not filename:
            raise InvalidContentError("No file uploaded.")
        blob = self.blob_store.upload(data, content_type, filename)
        doc: Dict[str, Any] = {
            "patient_id": patient_id,
            "filename": filename,
            "file_url": blob.url,
            "blob_public_id": blob.public_id,
            "blob_resource_type": blob.resolved_type,
            "content_type": content_type or "application/octet-stream",
            "created_at": utcnow(),
        }
        with storage_errors("save report"):
            res = self._reports.insert_one(doc)
        doc["_id"] = res.inserted_id
        logger.info("Stored report %s for patient %s", doc["_id"], patient_id)
        return self._to_report(doc)

    def list_for_patient(self, patient_id: str) -> List[Report]:
        with storage_errors("list reports"):
            cursor = self._reports.find({"patient_id": patient_id}).sort("created_at", DESCENDING)
            return [self._to_report(doc) for doc in cursor]

    def delete(self, report_id: str, requester_id: str) -> bool:
        """Delete a report owned by `requester_id`; returns whether the blob went too."""
        oid = maybe_object_id(report_id)
        doc = None
        if oid is not None:
            with storage_errors("load report"):
                doc = self._reports.find_one({"_id": oid})
        if doc is None:
            raise NotFoundError("Report not found.")
        if str(doc.get("patient_id")) != requester_id:
            raise ForbiddenError("You can only delete your own reports.")

        with storage_errors("delete report"):
            self._reports.delete_one({"_id": oid})
        return self.blob_store.delete(
            doc.get("blob_public_id") or "",
            resource_type=doc.get("blob_resource_type") or "image",
        )

    @staticmethod
    def _to_report(doc: Dict[str, Any]) -> Report:
        return Report(
            id=str(doc["_id"]),
            patient_id=str(doc.get("patient_id")),
            filename=doc.get("filename") or "",
            file_url=doc.get("file_url") or "",
            blob_public_id=doc.get("blob_public_id") or "",
            content_type=doc.get("content_type") or "application/octet-stream",
            created_at=doc.get("created_at") or utcnow(),
            blob_resource_type=doc.get("blob_resource_type"),
        )


__all__ = ["ReportService"]

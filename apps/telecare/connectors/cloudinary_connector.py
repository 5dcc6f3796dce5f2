"""Cloudinary-backed blob store.

Uploads return a stable URL plus the type/filename Cloudinary resolved.
Deletion is best-effort: failures are logged and reported as `False`, never
raised, so they cannot block the CRUD operation that triggered them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import cloudinary
import cloudinary.api
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from cloudinary.exceptions import NotFound as CloudinaryNotFound

from telecare.core.exceptions import BlobStorageError, ConfigurationError, NotFoundError
from telecare.core.settings import settings
from telecare.schemas.files import StoredBlob

logger = logging.getLogger(__name__)

_LOOKUP_RESOURCE_TYPES = ("image", "raw", "video")


def _to_blob(result: Dict[str, Any], *, filename: Optional[str] = None) -> StoredBlob:
    public_id = result.get("public_id") or ""
    return StoredBlob(
        url=result.get("secure_url") or result.get("url") or "",
        resolved_type=result.get("resource_type") or "raw",
        resolved_filename=filename
        or result.get("original_filename")
        or public_id.rsplit("/", 1)[-1],
        public_id=public_id,
    )


class CloudinaryBlobStore:
    """Upload/lookup/delete of chat attachments and medical reports."""

    def __init__(
        self,
        *,
        cloud_name: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        folder: str | None = None,
    ) -> None:
        secret = api_secret
        if secret is None and settings.cloudinary_api_secret is not None:
            secret = settings.cloudinary_api_secret.get_secret_value()
        self._cloud_name = cloud_name or settings.cloudinary_cloud_name
        self._api_key = api_key or settings.cloudinary_api_key
        self._folder = folder if folder is not None else settings.cloudinary_folder
        self._configured = bool(self._cloud_name and self._api_key and secret)
        if self._configured:
            cloudinary.config(
                cloud_name=self._cloud_name,
                api_key=self._api_key,
                api_secret=secret,
                secure=True,
            )
        else:
            logger.warning("Cloudinary credentials not configured; uploads will fail")

    def _require_config(self) -> None:
        if not self._configured:
            raise ConfigurationError(
                "Cloudinary is not configured.", code="blob_store_not_configured"
            )

    def upload(self, data: bytes, mime_hint: str | None, filename: str) -> StoredBlob:
        self._require_config()
        if not data:
            raise BlobStorageError("Refusing to upload an empty file.", status_code=400)
        try:
            result = cloudinary.uploader.upload(
                data,
                resource_type="auto",
                folder=self._folder or None,
                filename_override=filename,
                use_filename=True,
                unique_filename=True,
            )
        except CloudinaryError as exc:
            logger.error("Cloudinary upload of %s (%s) failed: %s", filename, mime_hint, exc)
            raise BlobStorageError("Cloudinary upload failed.") from exc
        return _to_blob(result, filename=filename)

    def resource(self, public_id: str) -> StoredBlob:
        self._require_config()
        for resource_type in _LOOKUP_RESOURCE_TYPES:
            try:
                result = cloudinary.api.resource(public_id, resource_type=resource_type)
            except CloudinaryNotFound:
                continue
            except CloudinaryError as exc:
                raise BlobStorageError("Cloudinary lookup failed.") from exc
            return _to_blob(result)
        raise NotFoundError("Stored file not found.")

    def list_files(self, *, max_results: int = 50) -> List[StoredBlob]:
        self._require_config()
        files: List[StoredBlob] = []
        for resource_type in ("image", "raw"):
            try:
                result = cloudinary.api.resources(
                    type="upload", max_results=max_results, resource_type=resource_type
                )
            except CloudinaryError as exc:
                raise BlobStorageError("Failed to fetch files from Cloudinary.") from exc
            files.extend(_to_blob(item) for item in result.get("resources") or [])
        return files

    def delete(self, public_id: str, *, resource_type: str = "image") -> bool:
        if not self._configured or not public_id:
            logger.warning("Skipping blob delete for %r: store not configured", public_id)
            return False
        # Some uploads were stored without their folder prefix.
        candidates = list(dict.fromkeys([public_id, public_id.rsplit("/", 1)[-1]]))
        for candidate in candidates:
            try:
                result = cloudinary.uploader.destroy(candidate, resource_type=resource_type)
            except Exception as exc:
                logger.warning("Cloudinary delete of %s failed: %s", candidate, exc)
                continue
            if result.get("result") == "ok":
                return True
        logger.warning("Could not delete %s from Cloudinary", public_id)
        return False


__all__ = ["CloudinaryBlobStore"]

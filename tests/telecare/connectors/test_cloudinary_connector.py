from __future__ import annotations

from typing import Any

import cloudinary.api
import cloudinary.uploader
import pytest
from cloudinary.exceptions import Error as CloudinaryError
from cloudinary.exceptions import NotFound as CloudinaryNotFound
from telecare.connectors.cloudinary_connector import CloudinaryBlobStore
from telecare.core.exceptions import BlobStorageError, ConfigurationError, NotFoundError


@pytest.fixture
def blob_store() -> CloudinaryBlobStore:
    return CloudinaryBlobStore(
        cloud_name="demo", api_key="key", api_secret="secret", folder="PDF-DOCS-IMGS"
    )


def test_upload_returns_url_type_and_filename(monkeypatch, blob_store):
    seen: dict[str, Any] = {}

    def fake_upload(data, **options):
        seen["data"] = data
        seen.update(options)
        return {
            "public_id": "PDF-DOCS-IMGS/labs_x1y2",
            "secure_url": "https://res.cloudinary.com/demo/image/upload/labs_x1y2.pdf",
            "resource_type": "image",
            "original_filename": "labs",
        }

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    blob = blob_store.upload(b"%PDF", "application/pdf", "labs.pdf")

    assert blob.url.endswith("labs_x1y2.pdf")
    assert blob.resolved_type == "image"
    assert blob.resolved_filename == "labs.pdf"
    assert blob.public_id == "PDF-DOCS-IMGS/labs_x1y2"
    assert seen["data"] == b"%PDF"
    assert seen["resource_type"] == "auto"
    assert seen["folder"] == "PDF-DOCS-IMGS"


def test_upload_failure_raises_blob_storage_error(monkeypatch, blob_store):
    def fail(*_args, **_kwargs):
        raise CloudinaryError("Invalid image file")

    monkeypatch.setattr(cloudinary.uploader, "upload", fail)

    with pytest.raises(BlobStorageError):
        blob_store.upload(b"junk", "image/png", "scan.png")


def test_empty_upload_is_rejected(blob_store):
    with pytest.raises(BlobStorageError) as excinfo:
        blob_store.upload(b"", "image/png", "scan.png")
    assert excinfo.value.status_code == 400


def test_unconfigured_store_refuses_uploads_but_not_deletes():
    store = CloudinaryBlobStore(cloud_name="", api_key="", api_secret="")
    with pytest.raises(ConfigurationError):
        store.upload(b"x", "image/png", "a.png")
    assert store.delete("PDF-DOCS-IMGS/a") is False


def test_resource_lookup_tries_each_resource_type(monkeypatch, blob_store):
    tried: list[str] = []

    def fake_resource(public_id, resource_type="image"):
        tried.append(resource_type)
        if resource_type == "image":
            raise CloudinaryNotFound("missing")
        return {
            "public_id": public_id,
            "secure_url": f"https://res.cloudinary.com/demo/raw/upload/{public_id}",
            "resource_type": resource_type,
        }

    monkeypatch.setattr(cloudinary.api, "resource", fake_resource)

    blob = blob_store.resource("PDF-DOCS-IMGS/notes.docx")

    assert tried == ["image", "raw"]
    assert blob.resolved_type == "raw"
    assert blob.resolved_filename == "notes.docx"


def test_resource_lookup_not_found(monkeypatch, blob_store):
    def missing(public_id, resource_type="image"):
        raise CloudinaryNotFound("missing")

    monkeypatch.setattr(cloudinary.api, "resource", missing)

    with pytest.raises(NotFoundError):
        blob_store.resource("nope")


def test_list_files_combines_images_and_raw(monkeypatch, blob_store):
    def fake_resources(**options):
        kind = options["resource_type"]
        return {
            "resources": [
                {
                    "public_id": f"PDF-DOCS-IMGS/{kind}-1",
                    "secure_url": f"https://res.cloudinary.com/demo/{kind}/upload/{kind}-1",
                    "resource_type": kind,
                }
            ]
        }

    monkeypatch.setattr(cloudinary.api, "resources", fake_resources)

    files = blob_store.list_files()

    assert [f.resolved_type for f in files] == ["image", "raw"]


def test_delete_falls_back_to_basename(monkeypatch, blob_store):
    calls: list[tuple[str, str]] = []

    def fake_destroy(public_id, resource_type="image"):
        calls.append((public_id, resource_type))
        return {"result": "ok" if "/" not in public_id else "not found"}

    monkeypatch.setattr(cloudinary.uploader, "destroy", fake_destroy)

    assert blob_store.delete("PDF-DOCS-IMGS/abc123", resource_type="raw") is True
    assert calls == [("PDF-DOCS-IMGS/abc123", "raw"), ("abc123", "raw")]


def test_delete_never_raises(monkeypatch, blob_store):
    def explode(*_args, **_kwargs):
        raise CloudinaryError("network down")

    monkeypatch.setattr(cloudinary.uploader, "destroy", explode)

    assert blob_store.delete("PDF-DOCS-IMGS/abc123") is False

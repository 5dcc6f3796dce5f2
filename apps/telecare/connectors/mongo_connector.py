"""Thin wrapper around a process-wide pymongo client."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, ContextManager

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from telecare.core.exceptions import StorageError
from telecare.core.settings import settings

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into `StorageError`.

    `DuplicateKeyError` passes through untouched so callers can resolve
    unique-index races themselves.
    """
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as exc:
        logger.error("Mongo %s failed: %s", operation, exc)
        raise StorageError(f"Failed to {operation}.") from exc


class MongoConnector(ContextManager["MongoConnector"]):
    """Owns a `MongoClient` and exposes the configured database."""

    def __init__(
        self,
        *,
        uri: str | None = None,
        database: str | None = None,
        client: MongoClient | None = None,
    ) -> None:
        self._client: MongoClient = client or MongoClient(
            uri or settings.mongo_uri,
            appname=settings.mongo_app_name,
            tz_aware=True,
            uuidRepresentation="standard",
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
        )
        self._database_name = database or settings.mongo_database

    @property
    def client(self) -> MongoClient:
        return self._client

    @property
    def database(self) -> Database:
        return self._client[self._database_name]

    def get_collection(self, name: str) -> Collection:
        return self.database.get_collection(name.strip())

    def ping(self) -> bool:
        try:
            self._client.admin.command("ping")
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError("MongoDB not reachable") from exc
        return True

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MongoConnector":
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()


__all__ = ["MongoConnector", "storage_errors"]

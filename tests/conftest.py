from __future__ import annotations

import os
import socket
from typing import Any

import pytest

# Settings skip `.env` files when APP_ENV is test, so a developer's local Mongo,
# Cloudinary or Gemini credentials never leak into unit tests.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("TELECARE_LOG_LEVEL", "WARNING")


class NetworkBlockedError(RuntimeError):
    pass


def _blocked(*_args: Any, **_kwargs: Any) -> Any:
    raise NetworkBlockedError(
        "Network access is disabled during tests. "
        "Mark the test with @pytest.mark.integration/@pytest.mark.network or set ALLOW_NETWORK=1."
    )


@pytest.fixture(autouse=True)
def _disable_network(monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest) -> None:
    """Keep unit tests off MongoDB, Cloudinary and Gemini."""

    if os.getenv("ALLOW_NETWORK") == "1":
        return

    if request.node.get_closest_marker("integration") or request.node.get_closest_marker("network"):
        return

    monkeypatch.setattr(socket, "create_connection", _blocked)
    monkeypatch.setattr(socket, "getaddrinfo", _blocked)


@pytest.fixture(autouse=True)
def _isolate_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "GEMINI_API_KEY_1",
        "GEMINI_API_KEY_2",
        "GEMINI_API_KEY_3",
        "CLOUDINARY_CLOUD_NAME",
        "CLOUDINARY_API_KEY",
        "CLOUDINARY_API_SECRET",
    ):
        monkeypatch.delenv(name, raising=False)

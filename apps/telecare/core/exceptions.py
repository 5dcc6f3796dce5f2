from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

logger = logging.getLogger(__name__)


def _error_payload(
    *,
    error: str,
    type_: str,
    code: str | None = None,
    details: Any | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": error, "code": code, "type": type_}
    if details is not None:
        payload["details"] = details
    return payload


class TelecareException(Exception):
    """Base exception for Telecare.

    Services raise these; FastAPI translates them via the handlers registered
    in `register_exception_handlers`. Code outside a request (scripts, tests)
    can catch them directly.
    """

    status_code: int = 400
    default_code: str | None = None

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any | None = None,
    ) -> None:
        self.message = message
        self.code = code if code is not None else self.default_code
        self.status_code = status_code if status_code is not None else self.status_code
        self.details = details
        super().__init__(message)


class InvalidContentError(TelecareException):
    """A send request carried neither usable text nor a well-formed file reference."""

    status_code = 400
    default_code = "invalid_content"


class InvalidParticipantsError(TelecareException):
    status_code = 400
    default_code = "invalid_participants"


class NotFoundError(TelecareException):
    status_code = 404
    default_code = "not_found"


class ConversationNotFoundError(NotFoundError):
    default_code = "conversation_not_found"


class ForbiddenError(TelecareException):
    status_code = 403
    default_code = "forbidden"


class StorageError(TelecareException):
    """Raised when the document store fails; fatal to the triggering request."""

    status_code = 500
    default_code = "storage_error"


class BlobStorageError(TelecareException):
    """Raised when the blob store rejects or fails an upload/lookup."""

    status_code = 502
    default_code = "blob_storage_error"


class ConfigurationError(TelecareException):
    """Raised when configuration is invalid (server-side)."""

    status_code = 500
    default_code = "configuration_error"


class UpstreamError(TelecareException):
    """Base class for failures of the remote LLM collaborator."""

    status_code = 503
    default_code = "upstream_error"


class UpstreamTransientError(UpstreamError):
    """5xx/overload style failures worth retrying."""

    default_code = "upstream_transient"


class UpstreamPermanentError(UpstreamError):
    default_code = "upstream_permanent"


def register_exception_handlers(app: FastAPI) -> None:
    """Register Telecare's exception handlers on a FastAPI app."""

    @app.exception_handler(TelecareException)
    async def _telecare_exception_handler(
        _request: Request, exc: TelecareException
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.__class__.__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(
                error=exc.message,
                code=exc.code,
                type_=exc.__class__.__name__,
                details=exc.details,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_payload(
                error="Validation error",
                code="validation_error",
                type_=exc.__class__.__name__,
                details=exc.errors(),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(
        _request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        detail = getattr(exc, "detail", None)
        if isinstance(detail, str):
            error = detail
            details = None
        else:
            error = "Request failed"
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(
                error=error,
                code="http_exception",
                type_=exc.__class__.__name__,
                details=details,
            ),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_payload(
                error="Internal server error",
                code="internal_error",
                type_="InternalServerError",
            ),
        )

"""
Exception hierarchy for the alert relay and the FastAPI handlers that turn
it into ``{"error": "..."}`` responses.

    AlertRelayError
    ├── StartupConfigError       missing Twilio credentials, process exits
    ├── AlertValidationError     400, request is missing required fields
    ├── NoValidRecipientsError   500, nothing left after E.164 filtering
    └── ProviderDispatchError    500, one or more Twilio calls failed
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

if TYPE_CHECKING:
    from .dispatch import DispatchResult

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND = "Route not found"


class AlertRelayError(Exception):
    """Base exception for all alert relay errors."""

    status_code: int = 500

    def __init__(self, message: str, *, prefix: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        # e.g. "Failed to send SMS"; prepended to the client-facing message
        self.prefix = prefix

    @property
    def public_message(self) -> str:
        if self.prefix:
            return f"{self.prefix}: {self.message}"
        return self.message


class StartupConfigError(AlertRelayError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"Missing Twilio credentials in environment variables: {', '.join(missing)}"
        )
        self.missing = missing


class AlertValidationError(AlertRelayError):
    status_code = 400


class NoValidRecipientsError(AlertRelayError):
    def __init__(self, *, prefix: str | None = None) -> None:
        super().__init__("No valid recipient phone numbers configured", prefix=prefix)


class ProviderDispatchError(AlertRelayError):
    """
    Raised after the whole batch has settled, when at least one recipient failed.

    ``result`` keeps every per-recipient outcome, successes included, and the
    message joins every failure reason rather than only the first.
    """

    def __init__(self, result: DispatchResult, *, prefix: str | None = None) -> None:
        super().__init__("; ".join(result.failures), prefix=prefix)
        self.result = result


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def handle_alert_relay_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AlertRelayError)
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.public_message)
    else:
        # Client mistakes are not server faults.
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.public_message)
    return _error_response(exc.status_code, exc.public_message)


async def handle_request_validation_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    details: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        msg = str(err.get("msg"))
        details.append(f"{loc}: {msg}" if loc else msg)

    message = "Invalid request body"
    if details:
        message += f" ({'; '.join(details)})"
    logger.info("%s %s rejected: %s", request.method, request.url.path, message)
    return _error_response(400, message)


async def handle_http_exception(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, StarletteHTTPException)
    # An unknown path and a known path with the wrong method both count as "not found".
    if exc.status_code in (404, 405):
        return _error_response(404, ROUTE_NOT_FOUND)
    return _error_response(exc.status_code, str(exc.detail))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AlertRelayError, handle_alert_relay_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)

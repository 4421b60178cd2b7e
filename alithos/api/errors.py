"""
API error types and the handlers that render them as JSON.

Every error body has the shape {"error": str, "details"?: any}.
"""
import traceback
from collections import defaultdict
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..clients.http import UpstreamError
from ..utils.logger import get_logger

logger = get_logger("api")


class ApiError(Exception):
    """An error with an HTTP status, raised from route code."""

    status_code = 500

    def __init__(self, error: str, details: Any = None, status_code: Optional[int] = None):
        super().__init__(error)
        self.error = error
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequest(ApiError):
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


def validation_details(exc: RequestValidationError) -> dict[str, list[str]]:
    """Group pydantic errors by dotted field path."""
    details: dict[str, list[str]] = defaultdict(list)
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details[".".join(loc) or "_root"].append(err.get("msg", "Invalid value"))
    return dict(details)


def upstream_error(exc: UpstreamError, action: str) -> ApiError:
    """Translate an upstream client failure, keeping its status code."""
    return ApiError(
        f"Failed to {action}",
        details=exc.details or exc.message,
        status_code=exc.status_code,
    )


def install_error_handlers(app: FastAPI, debug: bool = False) -> None:
    """Register the JSON error handlers on an app."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": validation_details(exc)},
        )

    @app.exception_handler(UpstreamError)
    async def handle_upstream_error(request: Request, exc: UpstreamError):
        logger.warning(
            f"Upstream failure: {exc.message}",
            extra={"service": exc.service, "status": exc.status_code, "path": request.url.path}
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "details": exc.details or None},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        body = {"error": "Internal server error", "details": str(exc)}
        if debug:
            body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=500, content=body)

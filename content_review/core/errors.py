from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str, param: str | None = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.param = param


class PipelineError(Exception):
    """Base for review pipeline failures that callers are expected to handle."""

    status_code = 500
    code = "pipeline_error"

    def __init__(self, message: str, item_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.item_id = item_id


class NotFoundError(PipelineError):
    """Item is absent, usually because another reviewer already decided it."""

    status_code = 404
    code = "resource_missing"


class ApprovalForbiddenError(PipelineError):
    status_code = 409
    code = "approval_forbidden"


class DuplicateItemError(PipelineError):
    status_code = 409
    code = "duplicate_item"


class UpstreamUnavailableError(PipelineError):
    """Queue store or audit log I/O failed. Safe to retry with backoff."""

    status_code = 503
    code = "upstream_unavailable"


class ItemValidationError(PipelineError):
    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, errors: Optional[List[dict]] = None, item_id: Optional[str] = None):
        super().__init__(message, item_id=item_id)
        self.errors = errors or []


def stripe_error(code: str, message: str, param: str | None = None, type_: str = "invalid_request_error"):
    body = {
        "error": {
            "type": type_,
            "code": code,
            "message": message,
        }
    }
    if param:
        body["error"]["param"] = param
    return body


def pipeline_error_body(exc: PipelineError) -> dict:
    body = {"success": False, "error": exc.message, "code": exc.code}
    if exc.item_id:
        body["item_id"] = exc.item_id
    if isinstance(exc, ItemValidationError) and exc.errors:
        body["details"] = exc.errors
    return body


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(
            status_code=exc.status_code,
            content=stripe_error(exc.code, exc.message, exc.param),
        )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError):
        headers = {"Retry-After": "1"} if isinstance(exc, UpstreamUnavailableError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=pipeline_error_body(exc),
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # keep it safe; do not leak internals in API response
        return JSONResponse(
            status_code=500,
            content=stripe_error("internal_error", f"{type(exc).__name__}: {exc}"),
        )

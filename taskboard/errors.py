"""Structured errors for the task store and their API rendering."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


def build_error_payload(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload = {"error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return payload


class AppError(Exception):
    """Application-scoped error for standardized API responses."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.message = message
        self.details = details
        self.payload = build_error_payload(self.code, message, details)


class InvalidArgumentError(AppError):
    """Missing or out-of-range input (title, deadline, hours, assignee ids, transitions)."""

    status_code = 400
    code = "invalid_argument"


class ForbiddenError(AppError):
    """Principal lacks the role, capability or relationship the operation needs."""

    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    """Referenced task or parent does not exist."""

    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    """Reserved. Concurrent writes resolve last-committed-wins instead."""

    status_code = 409
    code = "conflict"


async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = {"errors": [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]}
    return JSONResponse(
        status_code=InvalidArgumentError.status_code,
        content=build_error_payload(InvalidArgumentError.code, "Request validation failed", details),
    )

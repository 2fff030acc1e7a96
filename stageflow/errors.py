"""Structured error helpers for API responses."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def build_error_payload(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload = {"error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return payload


class AppError(Exception):
    """Application-scoped error for standardized API responses."""

    def __init__(self, status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = build_error_payload(code, message, details)


class PersistenceError(Exception):
    """The relational store failed (unavailable, timeout, conflict).

    Kept apart from business-rule rejections, which are returned as
    BlockReason values and never raised.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message


async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


async def persistence_error_handler(_: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Persistence failure during %s: %s", exc.operation, exc.message)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=build_error_payload(
            "persistence_error",
            "The data store is temporarily unavailable. Please try again.",
            {"operation": exc.operation},
        ),
    )


def raise_app_error(status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Raise an AppError with a standardized error shape."""
    raise AppError(status_code, code, message, details)


NOT_FOUND_CODES = {"task_not_found", "stage_not_found", "project_not_found", "comment_not_found"}


def block_status_code(code: str) -> int:
    """HTTP status for a workflow BlockReason code."""
    if code in NOT_FOUND_CODES:
        return status.HTTP_404_NOT_FOUND
    if code == "forbidden":
        return status.HTTP_403_FORBIDDEN
    return status.HTTP_409_CONFLICT


def raise_for_block(reason) -> None:
    """Raise the AppError matching a BlockReason returned by a workflow command."""
    raise AppError(block_status_code(reason.code), reason.code, reason.message, reason.details or None)

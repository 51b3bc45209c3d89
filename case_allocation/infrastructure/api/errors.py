"""Maps domain errors onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from case_allocation.domain.errors import (
    AllocationError,
    BusinessRuleError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[AllocationError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    BusinessRuleError: 409,
}


def status_for(exc: AllocationError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def allocation_error_handler(request: Request, exc: AllocationError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info("%s %s → %d %s: %s", request.method, request.url.path, status_code, type(exc).__name__, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AllocationError, allocation_error_handler)

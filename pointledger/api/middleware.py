"""Request logging, error handling and ledger error mapping."""

import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Type

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from pointledger.core.credits.exceptions import (
    AccountNotFound,
    AllocationExceedsOrganizationBudget,
    AllocationRequestError,
    InsufficientBalance,
    LedgerError,
    PersistenceUnavailable,
    TierNotAvailable,
    TransactionConflict,
)
from pointledger.utils.timer_utils import elapsed_ms

logger = logging.getLogger(__name__)

LEDGER_ERROR_STATUS: Dict[Type[LedgerError], int] = {
    AccountNotFound: 404,
    InsufficientBalance: 402,
    TierNotAvailable: 403,
    AllocationExceedsOrganizationBudget: 422,
    AllocationRequestError: 409,
    TransactionConflict: 409,
    PersistenceUnavailable: 503,
}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_body(request: Request, error: str, message: str, **extra: Any) -> Dict[str, Any]:
    return {
        "success": False,
        "error": error,
        "message": message,
        "request_id": _request_id(request),
        **extra,
    }


def status_for(exc: LedgerError) -> int:
    """HTTP status for a ledger error; unmapped subclasses are server errors."""
    for error_type in type(exc).__mro__:
        if error_type in LEDGER_ERROR_STATUS:
            return LEDGER_ERROR_STATUS[error_type]
    return 500


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request and per response, tagged with the caller."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        caller = request.headers.get("X-User-ID", "anonymous")
        organization = request.headers.get("X-Organization-ID")
        if organization:
            caller = f"{caller}@{organization}"

        started = time.perf_counter()
        logger.info(f"[{request_id}] {request.method} {request.url.path} caller={caller}")

        response = await call_next(request)

        duration_ms = elapsed_ms(started)
        logger.info(
            f"[{request_id}] {request.method} {request.url.path} "
            f"-> {response.status_code} in {duration_ms:.1f}ms"
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-MS"] = f"{duration_ms:.1f}"
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns anything no exception handler claimed into a 500 body."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(f"[{_request_id(request)}] Unhandled exception: {e}")
            return JSONResponse(
                status_code=500,
                content=_error_body(request, "internal_error", "An unexpected error occurred"),
            )


def add_middleware(app: FastAPI) -> None:
    # Added last runs first: logging assigns the request id the error handler reports
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)


async def ledger_exception_handler(request: Request, exc: LedgerError):
    """Ledger errors keep their code and context fields in the body."""
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(f"[{_request_id(request)}] {type(exc).__name__} -> {status_code}: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "request_id": _request_id(request), **exc.to_response_dict()},
    )


async def value_error_handler(request: Request, exc: ValueError):
    """Unknown tier or pack, negative points and similar bad arguments."""
    return JSONResponse(
        status_code=400,
        content=_error_body(request, "invalid_request", str(exc)),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"[{_request_id(request)}] HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "http_error", str(exc.detail), status_code=exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields: List[Dict[str, str]] = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"[{_request_id(request)}] Rejected request body: {fields}")

    return JSONResponse(
        status_code=422,
        content=_error_body(request, "validation_error", "Request validation failed", details=fields),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_exception_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

"""Global exception handling."""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from src.domains.fraud.exceptions import (
    InvalidTransaction,
    PersistenceError,
    ProfileUnavailable,
)

logger = structlog.get_logger()


async def fraud_engine_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map risk engine errors onto HTTP responses."""
    request_id = getattr(request.state, "request_id", "unknown")

    if isinstance(exc, InvalidTransaction):
        logger.warning(
            "invalid_transaction",
            request_id=request_id,
            transaction_id=exc.transaction_id,
            error=str(exc),
        )
        return JSONResponse(
            status_code=400,
            content={
                "error": "invalid_transaction",
                "message": str(exc),
                "transaction_id": exc.transaction_id,
                "request_id": request_id,
            },
        )

    if isinstance(exc, PersistenceError):
        logger.error(
            "persistence_failed",
            request_id=request_id,
            failures=exc.failures,
            error=str(exc),
        )
        result = exc.result.model_dump(mode="json", exclude={"profile"}) if exc.result else None
        return JSONResponse(
            status_code=503,
            content={
                "error": "persistence_failed",
                "message": str(exc),
                "failures": exc.failures,
                "retryable": exc.retryable,
                "result": result,
                "request_id": request_id,
            },
        )

    if isinstance(exc, ProfileUnavailable):
        logger.warning("profile_unavailable", request_id=request_id, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "error": "profile_unavailable",
                "message": str(exc),
                "retryable": exc.retryable,
                "request_id": request_id,
            },
        )

    logger.warning("fraud_engine_error", request_id=request_id, error=str(exc))
    return JSONResponse(
        status_code=400,
        content={"error": "bad_request", "message": str(exc), "request_id": request_id},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")

    if isinstance(exc, ValueError):
        logger.warning("bad_request", request_id=request_id, error=str(exc))
        return JSONResponse(
            status_code=400,
            content={"error": "bad_request", "message": str(exc), "request_id": request_id},
        )

    if isinstance(exc, (KeyError, LookupError)):
        logger.warning("not_found", request_id=request_id, error=str(exc))
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "message": str(exc), "request_id": request_id},
        )

    logger.exception("unhandled_exception", request_id=request_id, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "request_id": request_id,
        },
    )

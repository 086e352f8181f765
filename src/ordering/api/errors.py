"""Exception-to-HTTP mapping for the Ordering API.

Protean's handlers cover ``ValidationError`` (400) and
``ObjectNotFoundError`` (404). The handlers registered here take precedence
for the more specific ordering errors.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from shared.errors import (
    ConcurrencyConflict,
    InvalidStateTransition,
    OrderingError,
    PermissionDenied,
    PersistenceError,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    PermissionDenied: 403,
    ConcurrencyConflict: 409,
    PersistenceError: 500,
}


async def invalid_transition_handler(request: Request, exc: InvalidStateTransition) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.messages})


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    status_code = next(
        (code for error_cls, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_cls)),
        500,
    )
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
        return JSONResponse(status_code=status_code, content={"error": "Internal server error"})
    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc), "error_type": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(InvalidStateTransition, invalid_transition_handler)
    app.add_exception_handler(OrderingError, ordering_error_handler)

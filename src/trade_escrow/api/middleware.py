"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware - injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware - catches domain exceptions -> structured JSON errors
    3. CORSMiddleware - handles browser-based clients
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from trade_escrow.domain.exceptions import (
    AlreadySettledError,
    DealNotFoundError,
    DuplicateDealError,
    EscrowError,
    InsufficientFundsError,
    InvalidDealIdError,
    InvalidDealTermsError,
    MissingAuthorizationError,
    OutOfOrderError,
    PayoutTransferError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)

_STATUS_CODES: tuple[tuple[type[EscrowError], int], ...] = (
    (DealNotFoundError, 404),
    (UnauthorizedError, 403),
    (InsufficientFundsError, 402),
    (InvalidDealIdError, 422),
    (InvalidDealTermsError, 422),
    (DuplicateDealError, 409),
    (OutOfOrderError, 409),
    (MissingAuthorizationError, 409),
    (AlreadySettledError, 409),
    (PayoutTransferError, 502),
)


def status_code_for(exc: EscrowError) -> int:
    """HTTP status for a domain error; 400 for anything unmapped."""
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 400


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except PayoutTransferError as exc:
            logger.error(
                "payout.transfer_failed",
                deal_id=exc.deal_id,
                recipient=exc.recipient,
                amount=str(exc.amount),
            )
            return JSONResponse(
                status_code=502,
                content={
                    "error": exc.code,
                    "message": exc.message,
                    "completed": [r.to_dict() for r in exc.completed],
                },
            )
        except EscrowError as exc:
            status_code = status_code_for(exc)
            logger.warning("domain.error", error=exc.message, code=exc.code, status=status_code)
            return JSONResponse(
                status_code=status_code,
                content={"error": exc.code, "message": exc.message},
            )
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                },
            )


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    Order matters - middleware is applied bottom-up, so the last added
    middleware runs first.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIDMiddleware)

"""
Domain exceptions for the laundry orders service and their HTTP rendering.

Every caller-correctable failure is raised as a subclass of LaundryOrdersError
and rendered as `{"detail": ..., "code": ..., **extra}`. Unexpected database
failures become a generic 500 and are never retried here.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class LaundryOrdersError(Exception):
    """Base domain exception."""
    http_status = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str, *, extra: Optional[Dict[str, Any]] = None):
        self.message = message
        self.extra = extra or {}
        super().__init__(message)


class ValidationError(LaundryOrdersError):
    """Malformed input: missing label, bad quantity or price, below minimum amount."""
    code = "validation_error"


class NotFoundError(LaundryOrdersError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ForbiddenError(LaundryOrdersError):
    """Role or assignment does not cover the requested scope."""
    http_status = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class TransitionError(LaundryOrdersError):
    """Requested status is not the legal next step for the role and current status."""
    code = "invalid_transition"

    def __init__(self, current_status: Optional[str], allowed_status=None, message: Optional[str] = None):
        allowed = getattr(allowed_status, "value", allowed_status)
        if message is None:
            if allowed is None:
                message = f"No valid transition from {current_status} for this role"
            else:
                message = f"Invalid status transition: {current_status} can only move to {allowed}"
        super().__init__(
            message,
            extra={"current_status": current_status, "allowed_status": allowed},
        )
        self.current_status = current_status
        self.allowed_status = allowed


class PaymentError(LaundryOrdersError):
    """Order not delivered yet, or already paid."""
    code = "payment_error"


class ConflictError(LaundryOrdersError):
    """A concurrent writer won the race; the request may be retried."""
    http_status = status.HTTP_409_CONFLICT
    code = "conflict"


async def domain_exception_handler(request: Request, exc: LaundryOrdersError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "code": exc.code, **exc.extra},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Render body/query/path parsing failures in the domain error shape.

    The status stays 422; `errors` carries the field-level details.
    """
    errors = jsonable_encoder(exc.errors())
    message = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in errors
    )
    logger.info(f"Rejected malformed request on {request.method} {request.url.path}: {message}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": message or "Invalid request", "code": ValidationError.code, "errors": errors},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain, request validation and database exception handlers to the app."""
    app.add_exception_handler(LaundryOrdersError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)

"""
Domain errors raised by services and the access policy.

Every error carries the HTTP status it maps to; ``register_exception_handlers``
turns them into JSON responses so routers never translate them by hand.
"""
import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CRMError(Exception):
    """Base error for all domain failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(CRMError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"


class PermissionDenied(CRMError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class NotFound(CRMError):
    """Missing record, or a record hidden by the tenant/ownership filter."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str = "Record"):
        self.entity = entity
        super().__init__(f"{entity} not found")


class Conflict(CRMError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Record already exists"


class DuplicateCode(Conflict):
    """Voucher code collided with an existing one on every attempt."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not generate a unique voucher code after {attempts} attempts")


class InvalidTransition(Conflict):
    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Cannot change voucher status from '{from_status}' to '{to_status}'")


class ValidationFailed(CRMError):
    """Per-field validation errors, rejected before any write."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))


async def crm_error_handler(request: Request, exc: CRMError) -> JSONResponse:
    content = {"detail": exc.message}
    if isinstance(exc, ValidationFailed):
        content["errors"] = exc.errors

    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}

    logger.info(f"{request.method} {request.url.path} rejected with {exc.status_code}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CRMError, crm_error_handler)

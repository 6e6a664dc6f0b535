"""
Domain errors raised by the booking core.

Every error carries the HTTP status it maps to, a stable machine code and,
for validation problems, a list of per-field messages. The FastAPI layer
renders them through a single exception handler (see `register_error_handlers`).
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class BookingError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str, errors: Optional[List[FieldError]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])

    def to_dict(self) -> dict:
        body = {"detail": self.message, "code": self.code}
        if self.errors:
            body["errors"] = [e.as_dict() for e in self.errors]
        return body


class ValidationError(BookingError):
    status_code = 400
    code = "validation_error"


class FormatError(ValidationError):
    """A clock string that is not HH:MM."""


class NotFoundError(BookingError):
    status_code = 404
    code = "not_found"


class AuthorizationError(BookingError):
    status_code = 403
    code = "forbidden"


class ConflictError(BookingError):
    status_code = 400
    code = "conflict"


class InvalidStateError(ConflictError):
    code = "invalid_state"


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    logger.warning(
        f"{request.method} {request.url.path} rejected: {exc.code} - {exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)

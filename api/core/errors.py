"""
Domain exceptions and their HTTP translation.

Services raise `CatalogError` subclasses; `register_exception_handlers()` maps
them (plus validation and database integrity failures) onto one error body:

    {"status", "error", "message", "timestamp", "path", "field_errors"?}
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

import asyncpg
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

logger = logging.getLogger(__name__)

ACTIVE_RESERVATION_INDEX = "idx_reservations_active_book"
ISBN_INDEX = "idx_books_isbn"

CONCURRENT_MODIFICATION_MESSAGE = "Resource was modified by another request. Please retry."


class CatalogError(RuntimeError):
    status_code: int = status.HTTP_400_BAD_REQUEST


class InvalidArgumentError(CatalogError):
    status_code = status.HTTP_400_BAD_REQUEST


class ResourceNotFoundError(CatalogError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity_name: str, entity_id: int) -> None:
        super().__init__(f"{entity_name} not found with id {entity_id}")
        self.entity_name = entity_name
        self.entity_id = entity_id


class ConflictError(CatalogError):
    status_code = status.HTTP_409_CONFLICT


class DuplicateIsbnError(ConflictError):
    def __init__(self, isbn: str) -> None:
        super().__init__(f"ISBN already exists: {isbn}")
        self.isbn = isbn


class DeletionBlockedError(ConflictError):
    pass


class BookAlreadyReservedError(ConflictError):
    def __init__(self, book_id: int) -> None:
        super().__init__(f"Book with id {book_id} already has an active reservation")
        self.book_id = book_id


class InvalidReservationStateError(ConflictError):
    def __init__(self, reservation_id: int, current_status: str) -> None:
        super().__init__(
            f"Reservation {reservation_id} cannot be cancelled - current status is {current_status}"
        )
        self.reservation_id = reservation_id
        self.current_status = current_status


class ConcurrentModificationError(ConflictError):
    def __init__(self, message: str = CONCURRENT_MODIFICATION_MESSAGE) -> None:
        super().__init__(message)


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    status: int
    error: str
    message: str
    timestamp: datetime
    path: str
    field_errors: list[FieldError] = []


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_response(
    request: Request,
    status_code: int,
    message: str,
    field_errors: list[FieldError] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        status=status_code,
        error=_reason(status_code),
        message=message,
        timestamp=datetime.now(timezone.utc),
        path=request.url.path,
        field_errors=field_errors or [],
    )
    exclude = {"field_errors"} if not body.field_errors else None
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude=exclude))


def _field_name(loc: tuple[Any, ...]) -> str:
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


def _field_message(err: dict[str, Any]) -> str:
    message = str(err.get("msg") or "")
    if err.get("type") == "value_error":
        # Validator ValueErrors carry their own text.
        message = message.removeprefix("Value error, ")
    return message


def validation_error_response(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = list(exc.errors())

    for err in errors:
        loc = tuple(err.get("loc") or ())
        if err.get("type") == "json_invalid" or loc == ("body",):
            return error_response(request, status.HTTP_400_BAD_REQUEST, "Malformed request body")

    for err in errors:
        loc = tuple(err.get("loc") or ())
        if loc and loc[0] in ("path", "query") and len(loc) > 1:
            value = err.get("input")
            if value is None:
                message = f"Missing required parameter '{loc[1]}'"
            else:
                message = f"Invalid value '{value}' for parameter '{loc[1]}'"
            return error_response(request, status.HTTP_400_BAD_REQUEST, message)

    field_errors = [
        FieldError(field=_field_name(tuple(err.get("loc") or ())), message=_field_message(err))
        for err in errors
    ]
    return error_response(request, status.HTTP_400_BAD_REQUEST, "Validation failed", field_errors)


def integrity_error_response(request: Request, exc: asyncpg.IntegrityConstraintViolationError) -> JSONResponse:
    constraint = getattr(exc, "constraint_name", None)
    if constraint == ACTIVE_RESERVATION_INDEX:
        return error_response(request, status.HTTP_409_CONFLICT, "Book already has an active reservation")
    if constraint == ISBN_INDEX:
        return error_response(request, status.HTTP_409_CONFLICT, "ISBN already exists")
    logger.warning("integrity_violation path=%s constraint=%s", request.url.path, constraint)
    return error_response(request, status.HTTP_400_BAD_REQUEST, "Data integrity violation")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CatalogError)
    async def _catalog_error(request: Request, exc: CatalogError) -> JSONResponse:
        return error_response(request, exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return validation_error_response(request, exc)

    @app.exception_handler(asyncpg.IntegrityConstraintViolationError)
    async def _integrity_error(request: Request, exc: asyncpg.IntegrityConstraintViolationError) -> JSONResponse:
        return integrity_error_response(request, exc)

    @app.exception_handler(asyncpg.LockNotAvailableError)
    async def _lock_timeout(request: Request, exc: asyncpg.LockNotAvailableError) -> JSONResponse:
        logger.info("lock_timeout path=%s", request.url.path)
        return error_response(request, status.HTTP_409_CONFLICT, CONCURRENT_MODIFICATION_MESSAGE)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code < 400:
            return Response(status_code=exc.status_code, headers=exc.headers)
        return error_response(request, exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unexpected_error path=%s", request.url.path)
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
        )

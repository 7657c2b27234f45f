"""
Reservation API endpoints.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from core.db import BIGINT_MAX, BIGINT_MIN
from core.pagination import Page, PageParams, page_params

from . import schemas, service

ReservationId = Annotated[int, Path(ge=BIGINT_MIN, le=BIGINT_MAX)]

router = APIRouter(prefix="/api/v1/reservations")

NOT_FOUND = {404: {"description": "Reservation not found"}}


@router.post(
    "",
    response_model=schemas.ReservationResponse,
    status_code=201,
    responses={
        400: {"description": "Validation error"},
        404: {"description": "Book not found"},
        409: {"description": "Book already has an active reservation"},
    },
    summary="Create a reservation",
)
async def create_reservation(request: schemas.CreateReservationRequest) -> schemas.ReservationResponse:
    """
    Reserve a book for a user. Only one active reservation per book is allowed;
    an active reservation past its expiry is marked EXPIRED and replaced.
    """
    return await service.create_reservation(request)


@router.patch(
    "/{reservation_id}/cancel",
    response_model=schemas.ReservationResponse,
    responses={**NOT_FOUND, 409: {"description": "Reservation is not in ACTIVE state"}},
    summary="Cancel a reservation",
)
async def cancel_reservation(reservation_id: ReservationId) -> schemas.ReservationResponse:
    """
    Cancel an active reservation. The record is kept for history.
    """
    return await service.cancel_reservation(reservation_id)


@router.get("", response_model=Page[schemas.ReservationResponse], summary="List reservations")
async def list_reservations(
    book_id: int | None = Query(default=None, ge=BIGINT_MIN, le=BIGINT_MAX, description="Filter by book id"),
    user_name: str | None = Query(default=None, max_length=100, description="Filter by user name"),
    status: schemas.ReservationStatus | None = Query(default=None, description="Filter by status"),
    params: PageParams = Depends(page_params),
) -> Page[schemas.ReservationResponse]:
    return await service.list_reservations(params, book_id=book_id, user_name=user_name, status=status)


@router.get(
    "/{reservation_id}",
    response_model=schemas.ReservationResponse,
    responses=NOT_FOUND,
    summary="Get reservation by ID",
)
async def get_reservation(reservation_id: ReservationId) -> schemas.ReservationResponse:
    return await service.get_reservation(reservation_id)

"""
Reservation business logic.

A book can have at most one ACTIVE reservation. An ACTIVE reservation whose
expiry has passed is marked EXPIRED when someone else reserves the book.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from core import db, settings
from core.errors import (
    BookAlreadyReservedError,
    ConcurrentModificationError,
    InvalidReservationStateError,
    ResourceNotFoundError,
)
from core.pagination import Page, PageParams, order_by

from . import repository, schemas

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_reservation_response(row: dict) -> schemas.ReservationResponse:
    return schemas.ReservationResponse(
        id=int(row["id"]),
        book_id=int(row["book_id"]),
        book_title=str(row["book_title"]),
        user_name=str(row["user_name"]),
        status=schemas.ReservationStatus(row["status"]),
        reserved_at=row["reserved_at"],
        expires_at=row["expires_at"],
        cancelled_at=row.get("cancelled_at"),
    )


async def create_reservation(payload: schemas.CreateReservationRequest) -> schemas.ReservationResponse:
    now = _utc_now()

    async with db.transaction() as conn:
        await repository.set_lock_timeout(conn, settings.lock_timeout_ms())

        book = await repository.lock_book(conn, payload.book_id)
        if book is None:
            raise ResourceNotFoundError("Book", payload.book_id)

        active = await repository.find_active_for_book(conn, payload.book_id)
        if active is not None:
            if active["expires_at"] >= now:
                raise BookAlreadyReservedError(payload.book_id)
            await repository.mark_expired(conn, int(active["id"]))
            logger.info("reservation_expired id=%s book_id=%s", active["id"], payload.book_id)

        row = await repository.insert_reservation(
            conn,
            book_id=payload.book_id,
            user_name=payload.user_name,
            reserved_at=now,
            expires_at=now + timedelta(days=settings.reservation_period_days()),
        )

    logger.info("reservation_created id=%s book_id=%s", row["id"], payload.book_id)
    return _to_reservation_response({**row, "book_title": book["title"]})


async def cancel_reservation(reservation_id: int) -> schemas.ReservationResponse:
    current = await repository.get_reservation(reservation_id)
    if current is None:
        raise ResourceNotFoundError("Reservation", reservation_id)

    if current["status"] != schemas.ReservationStatus.ACTIVE.value:
        raise InvalidReservationStateError(reservation_id, str(current["status"]))

    row = await repository.cancel_reservation(
        reservation_id,
        expected_version=int(current["version"]),
        cancelled_at=_utc_now(),
    )
    if row is None:
        raise ConcurrentModificationError()

    logger.info("reservation_cancelled id=%s book_id=%s", reservation_id, row["book_id"])
    return _to_reservation_response(row)


async def get_reservation(reservation_id: int) -> schemas.ReservationResponse:
    row = await repository.get_reservation(reservation_id)
    if row is None:
        raise ResourceNotFoundError("Reservation", reservation_id)
    return _to_reservation_response(row)


async def list_reservations(
    params: PageParams,
    *,
    book_id: int | None = None,
    user_name: str | None = None,
    status: schemas.ReservationStatus | None = None,
) -> Page[schemas.ReservationResponse]:
    clause = order_by(params.sort, repository.SORTABLE_FIELDS, tiebreaker="r.id")
    filters = {
        "book_id": book_id,
        "user_name": user_name,
        "status": status.value if status is not None else None,
    }
    total = await repository.count_reservations(**filters)
    rows = await repository.list_reservations(
        **filters,
        limit=params.size,
        offset=params.offset,
        order_by=clause,
    )
    content = [_to_reservation_response(row) for row in rows]
    return Page[schemas.ReservationResponse].build(content, params, total)

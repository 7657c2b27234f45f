"""
Reservation persistence (raw SQL).

Concurrency control:
- creating a reservation locks the book row (FOR UPDATE), so attempts on the
  same book are serialized
- idx_reservations_active_book (partial unique index) is the backstop that
  guarantees one ACTIVE reservation per book
- cancel is guarded by the `version` counter
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import asyncpg

from core import db

RESERVATION_COLUMNS = (
    "r.id, r.book_id, b.title AS book_title, r.user_name, r.status, "
    "r.reserved_at, r.expires_at, r.cancelled_at, r.version"
)

SORTABLE_FIELDS = {
    "id": "r.id",
    "user_name": "r.user_name",
    "status": "r.status",
    "reserved_at": "r.reserved_at",
    "expires_at": "r.expires_at",
}

_FILTERS = """
    ($1::bigint IS NULL OR r.book_id = $1)
    AND ($2::text IS NULL OR r.user_name = $2)
    AND ($3::text IS NULL OR r.status = $3)
"""


async def set_lock_timeout(conn: asyncpg.Connection, timeout_ms: int) -> None:
    # Transaction-scoped; a waiter gives up with LockNotAvailableError.
    await conn.execute("SELECT set_config('lock_timeout', $1, true)", f"{int(timeout_ms)}ms")


async def lock_book(conn: asyncpg.Connection, book_id: int) -> dict[str, Any] | None:
    return await db.fetch_one_in(
        conn,
        "SELECT id, title FROM books WHERE id = $1 FOR UPDATE",
        book_id,
    )


async def find_active_for_book(conn: asyncpg.Connection, book_id: int) -> dict[str, Any] | None:
    return await db.fetch_one_in(
        conn,
        """
        SELECT id, status, expires_at, version
        FROM reservations
        WHERE book_id = $1
          AND status = 'ACTIVE'
        FOR UPDATE
        """,
        book_id,
    )


async def mark_expired(conn: asyncpg.Connection, reservation_id: int) -> None:
    await conn.execute(
        """
        UPDATE reservations
        SET status = 'EXPIRED',
            version = version + 1,
            updated_at = now()
        WHERE id = $1
          AND status = 'ACTIVE'
        """,
        reservation_id,
    )


async def insert_reservation(
    conn: asyncpg.Connection,
    *,
    book_id: int,
    user_name: str,
    reserved_at: datetime,
    expires_at: datetime,
) -> dict[str, Any]:
    row = await db.fetch_one_in(
        conn,
        """
        INSERT INTO reservations (book_id, user_name, status, reserved_at, expires_at)
        VALUES ($1, $2, 'ACTIVE', $3, $4)
        RETURNING id, book_id, user_name, status, reserved_at, expires_at, cancelled_at, version
        """,
        book_id,
        user_name,
        reserved_at,
        expires_at,
    )
    if row is None:
        raise RuntimeError("Failed to insert reservation.")
    return row


async def get_reservation(reservation_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations r
        JOIN books b ON b.id = r.book_id
        WHERE r.id = $1
        """,
        reservation_id,
    )


async def cancel_reservation(
    reservation_id: int,
    *,
    expected_version: int,
    cancelled_at: datetime,
) -> dict[str, Any] | None:
    """
    ACTIVE -> CANCELLED. Returns None if the row changed since it was read.
    """
    return await db.fetch_one(
        f"""
        WITH updated AS (
            UPDATE reservations
            SET status = 'CANCELLED',
                cancelled_at = $3,
                version = version + 1,
                updated_at = now()
            WHERE id = $1
              AND version = $2
              AND status = 'ACTIVE'
            RETURNING *
        )
        SELECT {RESERVATION_COLUMNS}
        FROM updated r
        JOIN books b ON b.id = r.book_id
        """,
        reservation_id,
        expected_version,
        cancelled_at,
    )


async def count_reservations(
    *,
    book_id: int | None = None,
    user_name: str | None = None,
    status: str | None = None,
) -> int:
    return int(
        await db.fetch_val(
            f"SELECT count(*) FROM reservations r WHERE {_FILTERS}",
            book_id,
            user_name,
            status,
        )
    )


async def list_reservations(
    *,
    book_id: int | None = None,
    user_name: str | None = None,
    status: str | None = None,
    limit: int,
    offset: int,
    order_by: str,
) -> list[dict[str, Any]]:
    # order_by is built from SORTABLE_FIELDS only (see core.pagination.order_by).
    return await db.fetch_all(
        f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations r
        JOIN books b ON b.id = r.book_id
        WHERE {_FILTERS}
        ORDER BY {order_by}
        LIMIT $4
        OFFSET $5
        """,
        book_id,
        user_name,
        status,
        limit,
        offset,
    )

"""
Author persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core import db

AUTHOR_COLUMNS = "a.id, a.first_name, a.last_name, a.bio, a.created_at, a.updated_at"

SORTABLE_FIELDS = {
    "id": "a.id",
    "first_name": "a.first_name",
    "last_name": "a.last_name",
    "created_at": "a.created_at",
    "updated_at": "a.updated_at",
}


async def count_authors() -> int:
    return int(await db.fetch_val("SELECT count(*) FROM authors"))


async def list_authors(*, limit: int, offset: int, order_by: str) -> list[dict[str, Any]]:
    # order_by is built from SORTABLE_FIELDS only (see core.pagination.order_by).
    return await db.fetch_all(
        f"""
        SELECT {AUTHOR_COLUMNS}
        FROM authors a
        ORDER BY {order_by}
        LIMIT $1
        OFFSET $2
        """,
        limit,
        offset,
    )


async def get_author(author_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {AUTHOR_COLUMNS}
        FROM authors a
        WHERE a.id = $1
        """,
        author_id,
    )


async def books_for_authors(author_ids: list[int]) -> list[dict[str, Any]]:
    """
    Book summaries for a batch of authors: [{author_id, id, title}, ...].
    """
    if not author_ids:
        return []
    return await db.fetch_all(
        """
        SELECT ba.author_id, b.id, b.title
        FROM book_authors ba
        JOIN books b ON b.id = ba.book_id
        WHERE ba.author_id = ANY($1::bigint[])
        ORDER BY ba.author_id, b.id
        """,
        author_ids,
    )


async def find_existing_ids(author_ids: list[int]) -> set[int]:
    rows = await db.fetch_all(
        "SELECT id FROM authors WHERE id = ANY($1::bigint[])",
        author_ids,
    )
    return {int(r["id"]) for r in rows}


async def create_author(*, first_name: str, last_name: str, bio: str | None) -> dict[str, Any]:
    row = await db.fetch_one(
        """
        INSERT INTO authors (first_name, last_name, bio)
        VALUES ($1, $2, $3)
        RETURNING id, first_name, last_name, bio, created_at, updated_at
        """,
        first_name,
        last_name,
        bio,
    )
    if row is None:
        raise RuntimeError("Failed to create author.")
    return row


async def update_author(
    author_id: int,
    *,
    first_name: str | None,
    last_name: str | None,
    bio: str | None,
) -> dict[str, Any] | None:
    """
    Partial update: NULL arguments keep the stored value.
    """
    return await db.fetch_one(
        """
        UPDATE authors
        SET first_name = COALESCE($2, first_name),
            last_name = COALESCE($3, last_name),
            bio = COALESCE($4, bio),
            updated_at = now()
        WHERE id = $1
        RETURNING id, first_name, last_name, bio, created_at, updated_at
        """,
        author_id,
        first_name,
        last_name,
        bio,
    )


async def lock_author(conn: asyncpg.Connection, author_id: int) -> dict[str, Any] | None:
    return await db.fetch_one_in(
        conn,
        "SELECT id FROM authors WHERE id = $1 FOR UPDATE",
        author_id,
    )


async def lock_books_of_author(conn: asyncpg.Connection, author_id: int) -> list[dict[str, Any]]:
    """
    Lock every book linked to `author_id`, in id order.

    Concurrent deletes of co-authors serialize on these rows, so the
    sole-author count that follows sees the other delete once it commits.
    """
    return await db.fetch_all_in(
        conn,
        """
        SELECT b.id
        FROM books b
        JOIN book_authors ba ON ba.book_id = b.id
        WHERE ba.author_id = $1
        ORDER BY b.id
        FOR UPDATE OF b
        """,
        author_id,
    )


async def sole_authored_books(conn: asyncpg.Connection, author_id: int) -> list[dict[str, Any]]:
    """
    Books for which `author_id` is the only linked author.
    """
    return await db.fetch_all_in(
        conn,
        """
        SELECT b.id, b.title
        FROM books b
        JOIN book_authors ba ON ba.book_id = b.id
        WHERE ba.author_id = $1
          AND (SELECT count(*) FROM book_authors x WHERE x.book_id = b.id) = 1
        ORDER BY b.id
        """,
        author_id,
    )


async def delete_author(conn: asyncpg.Connection, author_id: int) -> None:
    # book_authors rows go with it (ON DELETE CASCADE).
    await conn.execute("DELETE FROM authors WHERE id = $1", author_id)

"""
Book persistence (raw SQL).

`search_vector` is maintained by a trigger (see db/migrations) and is never
selected or written here.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core import db

BOOK_COLUMNS = "b.id, b.title, b.isbn, b.description, b.published_year, b.version, b.created_at, b.updated_at"
RETURNING_COLUMNS = "id, title, isbn, description, published_year, version, created_at, updated_at"

SORTABLE_FIELDS = {
    "id": "b.id",
    "title": "b.title",
    "isbn": "b.isbn",
    "published_year": "b.published_year",
    "created_at": "b.created_at",
    "updated_at": "b.updated_at",
}


async def count_books() -> int:
    return int(await db.fetch_val("SELECT count(*) FROM books"))


async def list_books(*, limit: int, offset: int, order_by: str) -> list[dict[str, Any]]:
    # order_by is built from SORTABLE_FIELDS only (see core.pagination.order_by).
    return await db.fetch_all(
        f"""
        SELECT {BOOK_COLUMNS}
        FROM books b
        ORDER BY {order_by}
        LIMIT $1
        OFFSET $2
        """,
        limit,
        offset,
    )


async def get_book(book_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {BOOK_COLUMNS}
        FROM books b
        WHERE b.id = $1
        """,
        book_id,
    )


async def authors_for_books(book_ids: list[int]) -> list[dict[str, Any]]:
    """
    Author summaries for a batch of books: [{book_id, id, first_name, last_name}, ...].
    """
    if not book_ids:
        return []
    return await db.fetch_all(
        """
        SELECT ba.book_id, a.id, a.first_name, a.last_name
        FROM book_authors ba
        JOIN authors a ON a.id = ba.author_id
        WHERE ba.book_id = ANY($1::bigint[])
        ORDER BY ba.book_id, a.id
        """,
        book_ids,
    )


async def isbn_exists(isbn: str, *, exclude_book_id: int | None = None) -> bool:
    row = await db.fetch_one(
        """
        SELECT 1 AS ok
        FROM books
        WHERE isbn = $1
          AND ($2::bigint IS NULL OR id <> $2)
        LIMIT 1
        """,
        isbn,
        exclude_book_id,
    )
    return row is not None


async def insert_book(
    conn: asyncpg.Connection,
    *,
    title: str,
    isbn: str,
    description: str | None,
    published_year: int | None,
) -> dict[str, Any]:
    row = await db.fetch_one_in(
        conn,
        f"""
        INSERT INTO books (title, isbn, description, published_year)
        VALUES ($1, $2, $3, $4)
        RETURNING {RETURNING_COLUMNS}
        """,
        title,
        isbn,
        description,
        published_year,
    )
    if row is None:
        raise RuntimeError("Failed to insert book.")
    return row


async def update_book(
    conn: asyncpg.Connection,
    book_id: int,
    *,
    expected_version: int,
    title: str | None,
    isbn: str | None,
    description: str | None,
    published_year: int | None,
) -> dict[str, Any] | None:
    """
    Partial update guarded by the version counter.

    Returns None when the row is gone or its version moved on.
    """
    return await db.fetch_one_in(
        conn,
        f"""
        UPDATE books
        SET title = COALESCE($3, title),
            isbn = COALESCE($4, isbn),
            description = COALESCE($5, description),
            published_year = COALESCE($6, published_year),
            version = version + 1,
            updated_at = now()
        WHERE id = $1
          AND version = $2
        RETURNING {RETURNING_COLUMNS}
        """,
        book_id,
        expected_version,
        title,
        isbn,
        description,
        published_year,
    )


async def replace_authors(conn: asyncpg.Connection, book_id: int, author_ids: list[int]) -> None:
    await conn.execute("DELETE FROM book_authors WHERE book_id = $1", book_id)
    await conn.executemany(
        "INSERT INTO book_authors (book_id, author_id) VALUES ($1, $2)",
        [(book_id, author_id) for author_id in author_ids],
    )


async def lock_book(conn: asyncpg.Connection, book_id: int) -> dict[str, Any] | None:
    return await db.fetch_one_in(
        conn,
        "SELECT id, title FROM books WHERE id = $1 FOR UPDATE",
        book_id,
    )


async def has_reservations(conn: asyncpg.Connection, book_id: int) -> bool:
    row = await db.fetch_one_in(
        conn,
        "SELECT 1 AS ok FROM reservations WHERE book_id = $1 LIMIT 1",
        book_id,
    )
    return row is not None


async def delete_book(conn: asyncpg.Connection, book_id: int) -> None:
    await conn.execute("DELETE FROM books WHERE id = $1", book_id)

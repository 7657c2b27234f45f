"""
Book business logic.

Rules:
- ISBN is unique (pre-checked here, enforced by idx_books_isbn)
- every book has at least one author; unknown author ids are a 404
- updates are guarded by the `version` counter
- books with any reservation history cannot be deleted
"""

from __future__ import annotations

import logging
from collections import defaultdict

from authors import repository as author_repository
from core import db
from core.errors import (
    ConcurrentModificationError,
    DeletionBlockedError,
    DuplicateIsbnError,
    ResourceNotFoundError,
)
from core.pagination import Page, PageParams, order_by

from . import repository, schemas

logger = logging.getLogger(__name__)


def _to_book_response(book_row: dict, author_rows: list[dict]) -> schemas.BookResponse:
    return schemas.BookResponse(
        id=int(book_row["id"]),
        title=str(book_row["title"]),
        isbn=str(book_row["isbn"]),
        description=book_row.get("description"),
        published_year=book_row.get("published_year"),
        authors=[to_author_summary(a) for a in author_rows],
        created_at=book_row["created_at"],
        updated_at=book_row["updated_at"],
    )


def to_author_summary(row: dict) -> schemas.AuthorSummary:
    return schemas.AuthorSummary(
        id=int(row["id"]),
        first_name=str(row["first_name"]),
        last_name=str(row["last_name"]),
    )


async def authors_by_book(book_ids: list[int]) -> dict[int, list[dict]]:
    grouped: dict[int, list[dict]] = defaultdict(list)
    for row in await repository.authors_for_books(book_ids):
        grouped[int(row["book_id"])].append(row)
    return grouped


async def _with_authors(book_rows: list[dict]) -> list[schemas.BookResponse]:
    grouped = await authors_by_book([int(row["id"]) for row in book_rows])
    return [_to_book_response(row, grouped[int(row["id"])]) for row in book_rows]


def _dedupe(ids: list[int]) -> list[int]:
    return list(dict.fromkeys(ids))


async def _resolve_author_ids(author_ids: list[int]) -> list[int]:
    ids = _dedupe(author_ids)
    existing = await author_repository.find_existing_ids(ids)
    missing = [author_id for author_id in ids if author_id not in existing]
    if missing:
        raise ResourceNotFoundError("Author", missing[0])
    return ids


async def list_books(params: PageParams) -> Page[schemas.BookResponse]:
    clause = order_by(params.sort, repository.SORTABLE_FIELDS, tiebreaker="b.id")
    total = await repository.count_books()
    rows = await repository.list_books(limit=params.size, offset=params.offset, order_by=clause)
    content = await _with_authors(rows)
    return Page[schemas.BookResponse].build(content, params, total)


async def get_book(book_id: int) -> schemas.BookResponse:
    row = await repository.get_book(book_id)
    if row is None:
        raise ResourceNotFoundError("Book", book_id)
    return (await _with_authors([row]))[0]


async def create_book(payload: schemas.CreateBookRequest) -> schemas.BookResponse:
    if await repository.isbn_exists(payload.isbn):
        raise DuplicateIsbnError(payload.isbn)

    author_ids = await _resolve_author_ids(payload.author_ids)

    async with db.transaction() as conn:
        row = await repository.insert_book(
            conn,
            title=payload.title,
            isbn=payload.isbn,
            description=payload.description,
            published_year=payload.published_year,
        )
        await repository.replace_authors(conn, int(row["id"]), author_ids)

    logger.info("book_created id=%s isbn=%s", row["id"], row["isbn"])
    return (await _with_authors([row]))[0]


async def update_book(book_id: int, payload: schemas.UpdateBookRequest) -> schemas.BookResponse:
    current = await repository.get_book(book_id)
    if current is None:
        raise ResourceNotFoundError("Book", book_id)

    if (
        payload.isbn is not None
        and payload.isbn != current["isbn"]
        and await repository.isbn_exists(payload.isbn, exclude_book_id=book_id)
    ):
        raise DuplicateIsbnError(payload.isbn)

    author_ids = None
    if payload.author_ids is not None:
        author_ids = await _resolve_author_ids(payload.author_ids)

    async with db.transaction() as conn:
        row = await repository.update_book(
            conn,
            book_id,
            expected_version=int(current["version"]),
            title=payload.title,
            isbn=payload.isbn,
            description=payload.description,
            published_year=payload.published_year,
        )
        if row is None:
            raise ConcurrentModificationError()
        if author_ids is not None:
            await repository.replace_authors(conn, book_id, author_ids)

    logger.info("book_updated id=%s version=%s", book_id, row["version"])
    return (await _with_authors([row]))[0]


async def delete_book(book_id: int) -> None:
    async with db.transaction() as conn:
        if await repository.lock_book(conn, book_id) is None:
            raise ResourceNotFoundError("Book", book_id)
        if await repository.has_reservations(conn, book_id):
            raise DeletionBlockedError("Cannot delete a book with reservation history")
        await repository.delete_book(conn, book_id)
    logger.info("book_deleted id=%s", book_id)

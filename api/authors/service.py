"""
Author business logic.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from core import db
from core.errors import DeletionBlockedError, ResourceNotFoundError
from core.pagination import Page, PageParams, order_by

from . import repository, schemas

logger = logging.getLogger(__name__)


def _to_author_response(author_row: dict, book_rows: list[dict]) -> schemas.AuthorResponse:
    return schemas.AuthorResponse(
        id=int(author_row["id"]),
        first_name=str(author_row["first_name"]),
        last_name=str(author_row["last_name"]),
        bio=author_row.get("bio"),
        books=[schemas.BookSummary(id=int(b["id"]), title=str(b["title"])) for b in book_rows],
        created_at=author_row["created_at"],
        updated_at=author_row["updated_at"],
    )


async def _with_books(author_rows: list[dict]) -> list[schemas.AuthorResponse]:
    ids = [int(row["id"]) for row in author_rows]
    books_by_author: dict[int, list[dict]] = defaultdict(list)
    for row in await repository.books_for_authors(ids):
        books_by_author[int(row["author_id"])].append(row)
    return [_to_author_response(row, books_by_author[int(row["id"])]) for row in author_rows]


async def list_authors(params: PageParams) -> Page[schemas.AuthorResponse]:
    clause = order_by(params.sort, repository.SORTABLE_FIELDS, tiebreaker="a.id")
    total = await repository.count_authors()
    rows = await repository.list_authors(limit=params.size, offset=params.offset, order_by=clause)
    content = await _with_books(rows)
    return Page[schemas.AuthorResponse].build(content, params, total)


async def get_author(author_id: int) -> schemas.AuthorResponse:
    row = await repository.get_author(author_id)
    if row is None:
        raise ResourceNotFoundError("Author", author_id)
    return (await _with_books([row]))[0]


async def create_author(payload: schemas.CreateAuthorRequest) -> schemas.AuthorResponse:
    row = await repository.create_author(
        first_name=payload.first_name,
        last_name=payload.last_name,
        bio=payload.bio,
    )
    logger.info("author_created id=%s", row["id"])
    return _to_author_response(row, [])


async def update_author(author_id: int, payload: schemas.UpdateAuthorRequest) -> schemas.AuthorResponse:
    row = await repository.update_author(
        author_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        bio=payload.bio,
    )
    if row is None:
        raise ResourceNotFoundError("Author", author_id)
    logger.info("author_updated id=%s", author_id)
    return (await _with_books([row]))[0]


async def delete_author(author_id: int) -> None:
    """
    Delete an author unless that would leave a book without any author.
    """
    async with db.transaction() as conn:
        if await repository.lock_author(conn, author_id) is None:
            raise ResourceNotFoundError("Author", author_id)

        await repository.lock_books_of_author(conn, author_id)
        orphaned = await repository.sole_authored_books(conn, author_id)
        if orphaned:
            raise DeletionBlockedError(
                f"Cannot delete author: sole author of book '{orphaned[0]['title']}'"
            )

        await repository.delete_author(conn, author_id)
    logger.info("author_deleted id=%s", author_id)

"""
Search orchestration: sanitize the query, run the ranked FTS query, attach
author summaries.
"""

from __future__ import annotations

from books import service as book_service
from core.errors import InvalidArgumentError
from core.pagination import MAX_PAGE_SIZE, Page, PageParams

from . import repository, schemas

MAX_QUERY_CHARS = 500


def sanitize_query(raw: str | None) -> str:
    """
    Trim, cap at MAX_QUERY_CHARS, and drop control characters other than
    tab and newline.
    """
    if raw is None:
        return ""
    trimmed = raw.strip()[:MAX_QUERY_CHARS]
    kept = "".join(ch for ch in trimmed if ch in "\t\n" or ord(ch) >= 0x20)
    return kept.strip()


async def search(query: str, *, page: int = 0, size: int = 20) -> Page[schemas.SearchResult]:
    sanitized = sanitize_query(query)
    if not sanitized:
        raise InvalidArgumentError("Search query must not be blank")

    params = PageParams(page=page, size=max(1, min(size, MAX_PAGE_SIZE)))

    total = await repository.count_matches(sanitized)
    if total == 0:
        return Page[schemas.SearchResult].build([], params, 0)

    rows = await repository.search_books(sanitized, limit=params.size, offset=params.offset)
    authors = await book_service.authors_by_book([int(row["id"]) for row in rows])
    content = [
        schemas.SearchResult(
            id=int(row["id"]),
            title=str(row["title"]),
            isbn=str(row["isbn"]),
            published_year=row.get("published_year"),
            authors=[book_service.to_author_summary(a) for a in authors[int(row["id"])]],
            relevance_score=float(row["relevance_score"]),
        )
        for row in rows
    ]
    return Page[schemas.SearchResult].build(content, params, total)

"""
Search API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE, Page

from . import schemas, service

router = APIRouter(prefix="/api/v1/search")


@router.get(
    "",
    response_model=Page[schemas.SearchResult],
    responses={400: {"description": "Query is blank or empty"}},
    summary="Search books",
)
async def search(
    q: str = Query(..., description="Search query (max 500 chars)", examples=["effective java"]),
    page: int = Query(0, ge=0, le=MAX_PAGE),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1),
) -> Page[schemas.SearchResult]:
    """
    Full-text search across book titles, descriptions and author names.

    Results are ordered by relevance (any sort parameter is ignored). Whole
    words are matched after English stemming; prefix matching is not supported.
    """
    return await service.search(q, page=page, size=size)

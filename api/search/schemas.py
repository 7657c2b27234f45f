"""
Search API schemas.
"""

from __future__ import annotations

from pydantic import BaseModel

from books.schemas import AuthorSummary


class SearchResult(BaseModel):
    id: int
    title: str
    isbn: str
    published_year: int | None
    authors: list[AuthorSummary]
    relevance_score: float

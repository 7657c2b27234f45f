"""
Full-text search SQL (raw).

Books match when either:
- books.search_vector (title weight A, description weight B; trigger-maintained)
- any linked author's "first_name last_name"
matches plainto_tsquery('english', query).

relevance_score = max(book rank, best author-name rank).
"""

from __future__ import annotations

from typing import Any

from core import db

_MATCHES_CTE = """
WITH
q AS (
  SELECT plainto_tsquery('english', $1) AS tsq
),
author_match AS (
  SELECT
    ba.book_id,
    max(ts_rank(to_tsvector('english', a.first_name || ' ' || a.last_name), q.tsq)) AS author_rank
  FROM book_authors ba
  JOIN authors a ON a.id = ba.author_id
  CROSS JOIN q
  WHERE to_tsvector('english', a.first_name || ' ' || a.last_name) @@ q.tsq
  GROUP BY ba.book_id
),
matches AS (
  SELECT
    b.id,
    b.title,
    b.isbn,
    b.published_year,
    GREATEST(
      COALESCE(ts_rank(b.search_vector, q.tsq), 0),
      COALESCE(am.author_rank, 0)
    )::float8 AS relevance_score
  FROM books b
  CROSS JOIN q
  LEFT JOIN author_match am ON am.book_id = b.id
  WHERE b.search_vector @@ q.tsq
     OR am.book_id IS NOT NULL
)
"""


async def count_matches(query_text: str) -> int:
    return int(await db.fetch_val(_MATCHES_CTE + "SELECT count(*) FROM matches", query_text))


async def search_books(query_text: str, *, limit: int, offset: int) -> list[dict[str, Any]]:
    return await db.fetch_all(
        _MATCHES_CTE
        + """
        SELECT id, title, isbn, published_year, relevance_score
        FROM matches
        ORDER BY relevance_score DESC, id ASC
        LIMIT $2
        OFFSET $3
        """,
        query_text,
        limit,
        offset,
    )

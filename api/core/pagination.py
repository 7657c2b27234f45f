"""
Paging and sorting for list endpoints.

Query parameters:
- page: zero-based page index
- size: page size, clamped to MAX_PAGE_SIZE
- sort: repeatable, "field" or "field,asc" / "field,desc"

Sort fields are whitelisted per resource and mapped to SQL expressions, so
ORDER BY clauses are never built from raw user input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel

from .db import BIGINT_MAX
from .errors import InvalidArgumentError

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
# Largest page index whose OFFSET still fits in a BIGINT.
MAX_PAGE = BIGINT_MAX // MAX_PAGE_SIZE

T = TypeVar("T")


@dataclass(frozen=True)
class PageParams:
    page: int = 0
    size: int = DEFAULT_PAGE_SIZE
    sort: tuple[str, ...] = field(default_factory=tuple)

    @property
    def offset(self) -> int:
        return self.page * self.size


def page_params(
    page: int = Query(0, ge=0, le=MAX_PAGE, description="Zero-based page index"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, description=f"Page size (max {MAX_PAGE_SIZE})"),
    sort: list[str] | None = Query(None, description="Sort order: field[,asc|desc]. Repeatable."),
) -> PageParams:
    return PageParams(
        page=page,
        size=min(size, MAX_PAGE_SIZE),
        sort=tuple(s for s in (sort or []) if s and s.strip()),
    )


def order_by(sort: Sequence[str], allowed: dict[str, str], *, tiebreaker: str) -> str:
    """
    Build an ORDER BY body from `field[,direction]` terms.

    `allowed` maps public field names to SQL expressions. `tiebreaker` is
    always appended last so paging is deterministic.
    """
    terms: list[str] = []
    for raw in sort:
        name, _, direction = raw.partition(",")
        name = name.strip()
        direction = (direction.strip() or "asc").lower()

        expr = allowed.get(name)
        if expr is None:
            options = ", ".join(sorted(allowed))
            raise InvalidArgumentError(f"Cannot sort by '{name}'. Allowed fields: {options}")
        if direction not in ("asc", "desc"):
            raise InvalidArgumentError(f"Invalid sort direction '{direction}' for field '{name}'")
        terms.append(f"{expr} {direction.upper()}")

    terms.append(f"{tiebreaker} ASC")
    return ", ".join(terms)


class Page(BaseModel, Generic[T]):
    content: list[T]
    page: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool

    @classmethod
    def build(cls, content: list[T], params: PageParams, total_elements: int) -> "Page[T]":
        total_pages = math.ceil(total_elements / params.size) if params.size else 0
        return cls(
            content=content,
            page=params.page,
            size=params.size,
            total_elements=total_elements,
            total_pages=total_pages,
            first=params.page == 0,
            last=params.page >= total_pages - 1,
        )

"""
Test doubles for repository functions and DB transactions.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

FAKE_CONN = object()

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class AsyncStub:
    """
    Awaitable stand-in that records calls and returns `result` (or raises
    `error`). A callable `result` is invoked with the call arguments.
    """

    def __init__(self, result: Any = None, *, error: BaseException | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[tuple, dict]] = []

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self.calls.append((args, kwargs))
        if self.error is not None:
            raise self.error
        if callable(self.result):
            return self.result(*args, **kwargs)
        return self.result

    @property
    def called(self) -> bool:
        return bool(self.calls)


@asynccontextmanager
async def fake_transaction():
    yield FAKE_CONN


def author_row(author_id: int = 1, first_name: str = "Joshua", last_name: str = "Bloch", **extra: Any) -> dict:
    return {
        "id": author_id,
        "first_name": first_name,
        "last_name": last_name,
        "bio": None,
        "created_at": NOW,
        "updated_at": NOW,
        **extra,
    }


def book_row(book_id: int = 10, title: str = "Effective Java", isbn: str = "9780134685991", **extra: Any) -> dict:
    return {
        "id": book_id,
        "title": title,
        "isbn": isbn,
        "description": None,
        "published_year": 2018,
        "version": 0,
        "created_at": NOW,
        "updated_at": NOW,
        **extra,
    }


def reservation_row(reservation_id: int = 100, book_id: int = 10, status: str = "ACTIVE", **extra: Any) -> dict:
    return {
        "id": reservation_id,
        "book_id": book_id,
        "book_title": "Effective Java",
        "user_name": "alice",
        "status": status,
        "reserved_at": NOW,
        "expires_at": NOW,
        "cancelled_at": None,
        "version": 0,
        **extra,
    }

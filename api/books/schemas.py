"""
Book API schemas (request/response models).
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, field_validator

from core.db import BIGINT_MAX, BIGINT_MIN

ISBN_PATTERN = r"^[0-9]{13}$"
ISBN_MESSAGE = "ISBN must be exactly 13 digits"

# ASCII digits only.
_ISBN_RE = re.compile(r"[0-9]{13}")

AuthorIds = list[Annotated[int, Field(ge=BIGINT_MIN, le=BIGINT_MAX)]]


def _check_isbn(value: str | None) -> str | None:
    if value is not None and _ISBN_RE.fullmatch(value) is None:
        raise ValueError(ISBN_MESSAGE)
    return value


class CreateBookRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    isbn: str = Field(..., description="ISBN-13, exactly 13 digits", json_schema_extra={"pattern": ISBN_PATTERN})
    description: str | None = Field(default=None, max_length=10000)
    published_year: int | None = Field(default=None, ge=1000, le=2100)
    author_ids: AuthorIds = Field(..., min_length=1)

    @field_validator("title")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("isbn")
    @classmethod
    def _isbn_digits(cls, value: str) -> str:
        return _check_isbn(value)


class UpdateBookRequest(BaseModel):
    # Omitted or null fields are left unchanged; author_ids replaces the set.
    title: str | None = Field(default=None, min_length=1, max_length=255)
    isbn: str | None = Field(default=None, json_schema_extra={"pattern": ISBN_PATTERN})
    description: str | None = Field(default=None, max_length=10000)
    published_year: int | None = Field(default=None, ge=1000, le=2100)
    author_ids: AuthorIds | None = Field(default=None, min_length=1)

    @field_validator("title")
    @classmethod
    def _not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("isbn")
    @classmethod
    def _isbn_digits(cls, value: str | None) -> str | None:
        return _check_isbn(value)


class AuthorSummary(BaseModel):
    id: int
    first_name: str
    last_name: str


class BookResponse(BaseModel):
    id: int
    title: str
    isbn: str
    description: str | None
    published_year: int | None
    authors: list[AuthorSummary]
    created_at: datetime
    updated_at: datetime

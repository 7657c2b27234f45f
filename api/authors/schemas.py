"""
Author API schemas (request/response models).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class CreateAuthorRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    bio: str | None = Field(default=None, max_length=5000)

    @field_validator("first_name", "last_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class UpdateAuthorRequest(BaseModel):
    # Omitted or null fields are left unchanged.
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    bio: str | None = Field(default=None, max_length=5000)

    @field_validator("first_name", "last_name")
    @classmethod
    def _not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value


class BookSummary(BaseModel):
    id: int
    title: str


class AuthorResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    bio: str | None
    books: list[BookSummary]
    created_at: datetime
    updated_at: datetime

"""
Reservation API schemas (request/response models).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from core.db import BIGINT_MAX, BIGINT_MIN


class ReservationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class CreateReservationRequest(BaseModel):
    book_id: int = Field(..., ge=BIGINT_MIN, le=BIGINT_MAX)
    user_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("user_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class ReservationResponse(BaseModel):
    id: int
    book_id: int
    book_title: str
    user_name: str
    status: ReservationStatus
    reserved_at: datetime
    expires_at: datetime
    cancelled_at: datetime | None

from datetime import timedelta

import pytest

from core.errors import (
    BookAlreadyReservedError,
    ConcurrentModificationError,
    InvalidReservationStateError,
    ResourceNotFoundError,
)
from core.pagination import PageParams
from reservations import repository, schemas, service

from fakes import NOW, AsyncStub, reservation_row

pytestmark = pytest.mark.anyio


@pytest.fixture
def frozen_now(monkeypatch):
    monkeypatch.setattr(service, "_utc_now", lambda: NOW)
    return NOW


@pytest.fixture
def locked_book(monkeypatch):
    monkeypatch.setattr(repository, "set_lock_timeout", AsyncStub())
    monkeypatch.setattr(repository, "lock_book", AsyncStub({"id": 10, "title": "Effective Java"}))


def _insert_echo(conn, **kwargs):
    return {
        "id": 200,
        "book_id": kwargs["book_id"],
        "user_name": kwargs["user_name"],
        "status": "ACTIVE",
        "reserved_at": kwargs["reserved_at"],
        "expires_at": kwargs["expires_at"],
        "cancelled_at": None,
        "version": 0,
    }


async def test_create_reservation_book_not_found(monkeypatch, fake_tx):
    monkeypatch.setattr(repository, "set_lock_timeout", AsyncStub())
    monkeypatch.setattr(repository, "lock_book", AsyncStub(None))
    with pytest.raises(ResourceNotFoundError, match="Book not found with id 10"):
        await service.create_reservation(schemas.CreateReservationRequest(book_id=10, user_name="alice"))


async def test_create_reservation_sets_fourteen_day_expiry(monkeypatch, fake_tx, frozen_now, locked_book):
    monkeypatch.delenv("RESERVATION_PERIOD_DAYS", raising=False)
    monkeypatch.setattr(repository, "find_active_for_book", AsyncStub(None))
    monkeypatch.setattr(repository, "insert_reservation", AsyncStub(_insert_echo))

    result = await service.create_reservation(schemas.CreateReservationRequest(book_id=10, user_name="alice"))

    assert result.status is schemas.ReservationStatus.ACTIVE
    assert result.book_title == "Effective Java"
    assert result.reserved_at == frozen_now
    assert result.expires_at == frozen_now + timedelta(days=14)
    assert result.cancelled_at is None


async def test_create_reservation_uses_configured_lock_timeout(monkeypatch, fake_tx, frozen_now):
    monkeypatch.setenv("DB_LOCK_TIMEOUT_MS", "750")
    timeout_stub = AsyncStub()
    monkeypatch.setattr(repository, "set_lock_timeout", timeout_stub)
    monkeypatch.setattr(repository, "lock_book", AsyncStub({"id": 10, "title": "Effective Java"}))
    monkeypatch.setattr(repository, "find_active_for_book", AsyncStub(None))
    monkeypatch.setattr(repository, "insert_reservation", AsyncStub(_insert_echo))

    await service.create_reservation(schemas.CreateReservationRequest(book_id=10, user_name="alice"))

    assert timeout_stub.calls == [((fake_tx, 750), {})]


@pytest.mark.parametrize("remaining", [timedelta(days=3), timedelta(0)], ids=["days_left", "expires_now"])
async def test_create_reservation_conflicts_with_live_reservation(monkeypatch, fake_tx, frozen_now, locked_book, remaining):
    # Still live up to and including its expiry instant.
    active = {"id": 100, "status": "ACTIVE", "expires_at": frozen_now + remaining, "version": 0}
    monkeypatch.setattr(repository, "find_active_for_book", AsyncStub(active))
    insert_stub = AsyncStub(_insert_echo)
    monkeypatch.setattr(repository, "insert_reservation", insert_stub)

    with pytest.raises(BookAlreadyReservedError, match="Book with id 10 already has an active reservation"):
        await service.create_reservation(schemas.CreateReservationRequest(book_id=10, user_name="bob"))
    assert not insert_stub.called


async def test_create_reservation_replaces_expired_reservation(monkeypatch, fake_tx, frozen_now, locked_book):
    stale = {"id": 100, "status": "ACTIVE", "expires_at": frozen_now - timedelta(seconds=1), "version": 0}
    monkeypatch.setattr(repository, "find_active_for_book", AsyncStub(stale))
    expire_stub = AsyncStub()
    monkeypatch.setattr(repository, "mark_expired", expire_stub)
    monkeypatch.setattr(repository, "insert_reservation", AsyncStub(_insert_echo))

    result = await service.create_reservation(schemas.CreateReservationRequest(book_id=10, user_name="bob"))

    assert expire_stub.calls == [((fake_tx, 100), {})]
    assert result.id == 200
    assert result.user_name == "bob"


async def test_cancel_reservation_not_found(monkeypatch):
    monkeypatch.setattr(repository, "get_reservation", AsyncStub(None))
    with pytest.raises(ResourceNotFoundError, match="Reservation not found with id 5"):
        await service.cancel_reservation(5)


@pytest.mark.parametrize("current_status", ["CANCELLED", "EXPIRED"])
async def test_cancel_reservation_requires_active(monkeypatch, current_status):
    monkeypatch.setattr(repository, "get_reservation", AsyncStub(reservation_row(status=current_status)))
    cancel_stub = AsyncStub()
    monkeypatch.setattr(repository, "cancel_reservation", cancel_stub)

    with pytest.raises(InvalidReservationStateError, match=f"current status is {current_status}"):
        await service.cancel_reservation(100)
    assert not cancel_stub.called


async def test_cancel_reservation_version_conflict(monkeypatch, frozen_now):
    monkeypatch.setattr(repository, "get_reservation", AsyncStub(reservation_row(version=2)))
    cancel_stub = AsyncStub(None)
    monkeypatch.setattr(repository, "cancel_reservation", cancel_stub)

    with pytest.raises(ConcurrentModificationError):
        await service.cancel_reservation(100)
    assert cancel_stub.calls[0][1] == {"expected_version": 2, "cancelled_at": frozen_now}


async def test_cancel_reservation_success(monkeypatch, frozen_now):
    monkeypatch.setattr(repository, "get_reservation", AsyncStub(reservation_row()))
    monkeypatch.setattr(
        repository,
        "cancel_reservation",
        AsyncStub(reservation_row(status="CANCELLED", cancelled_at=frozen_now, version=1)),
    )

    result = await service.cancel_reservation(100)

    assert result.status is schemas.ReservationStatus.CANCELLED
    assert result.cancelled_at == frozen_now


async def test_list_reservations_passes_filters(monkeypatch):
    count_stub = AsyncStub(1)
    list_stub = AsyncStub([reservation_row()])
    monkeypatch.setattr(repository, "count_reservations", count_stub)
    monkeypatch.setattr(repository, "list_reservations", list_stub)

    page = await service.list_reservations(
        PageParams(page=0, size=10),
        book_id=10,
        status=schemas.ReservationStatus.ACTIVE,
    )

    assert count_stub.calls[0][1] == {"book_id": 10, "user_name": None, "status": "ACTIVE"}
    assert list_stub.calls[0][1]["limit"] == 10
    assert list_stub.calls[0][1]["order_by"] == "r.id ASC"
    assert page.content[0].book_title == "Effective Java"

"""
Book API endpoints.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Response, status

from core.db import BIGINT_MAX, BIGINT_MIN
from core.pagination import Page, PageParams, page_params

from . import schemas, service

BookId = Annotated[int, Path(ge=BIGINT_MIN, le=BIGINT_MAX)]

router = APIRouter(prefix="/api/v1/books")

NOT_FOUND = {404: {"description": "Book not found"}}
ISBN_CONFLICT = {409: {"description": "ISBN already exists"}}


@router.get("", response_model=Page[schemas.BookResponse], summary="List all books")
async def list_books(params: PageParams = Depends(page_params)) -> Page[schemas.BookResponse]:
    """
    Paginated list of books with their author summaries.
    """
    return await service.list_books(params)


@router.get("/{book_id}", response_model=schemas.BookResponse, responses=NOT_FOUND, summary="Get book by ID")
async def get_book(book_id: BookId) -> schemas.BookResponse:
    return await service.get_book(book_id)


@router.post(
    "",
    response_model=schemas.BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Validation error"},
        404: {"description": "Author not found"},
        **ISBN_CONFLICT,
    },
    summary="Create a new book",
)
async def create_book(request: schemas.CreateBookRequest) -> schemas.BookResponse:
    """
    ISBN must be exactly 13 digits and unique. At least one author id is required.
    """
    return await service.create_book(request)


@router.put(
    "/{book_id}",
    response_model=schemas.BookResponse,
    responses={**NOT_FOUND, **ISBN_CONFLICT},
    summary="Update a book",
)
async def update_book(book_id: BookId, request: schemas.UpdateBookRequest) -> schemas.BookResponse:
    """
    Partial update: omitted or null fields are left unchanged.
    """
    return await service.update_book(book_id, request)


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={**NOT_FOUND, 409: {"description": "Book has reservation history"}},
    summary="Delete a book",
)
async def delete_book(book_id: BookId) -> Response:
    await service.delete_book(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""
Author API endpoints.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Response, status

from core.db import BIGINT_MAX, BIGINT_MIN
from core.pagination import Page, PageParams, page_params

from . import schemas, service

AuthorId = Annotated[int, Path(ge=BIGINT_MIN, le=BIGINT_MAX)]

router = APIRouter(prefix="/api/v1/authors")

NOT_FOUND = {404: {"description": "Author not found"}}


@router.get("", response_model=Page[schemas.AuthorResponse], summary="List all authors")
async def list_authors(params: PageParams = Depends(page_params)) -> Page[schemas.AuthorResponse]:
    """
    Paginated list of authors with their book summaries.
    """
    return await service.list_authors(params)


@router.get("/{author_id}", response_model=schemas.AuthorResponse, responses=NOT_FOUND, summary="Get author by ID")
async def get_author(author_id: AuthorId) -> schemas.AuthorResponse:
    return await service.get_author(author_id)


@router.post(
    "",
    response_model=schemas.AuthorResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Validation error"}},
    summary="Create a new author",
)
async def create_author(request: schemas.CreateAuthorRequest) -> schemas.AuthorResponse:
    return await service.create_author(request)


@router.put("/{author_id}", response_model=schemas.AuthorResponse, responses=NOT_FOUND, summary="Update an author")
async def update_author(author_id: AuthorId, request: schemas.UpdateAuthorRequest) -> schemas.AuthorResponse:
    """
    Partial update: omitted or null fields are left unchanged.
    """
    return await service.update_author(author_id, request)


@router.delete(
    "/{author_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={**NOT_FOUND, 409: {"description": "Author is the sole author of a book"}},
    summary="Delete an author",
)
async def delete_author(author_id: AuthorId) -> Response:
    await service.delete_author(author_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

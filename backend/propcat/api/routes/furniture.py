"""Public catalog endpoints: listing, search, duplicate check, lookups.

Listing and search degrade instead of failing: on a store error they answer
200 with no items and ``degraded: true``. The duplicate check is advisory and
fails open to an empty candidate list.
"""

from __future__ import annotations

from typing import Literal

import structlog
from fastapi import APIRouter, BackgroundTasks, Query, Request

from propcat.api.deps import Favorites, OptionalActor, SessionDep, favorite_ids_for
from propcat.catalog import duplicates, search, store, taxonomy
from propcat.database import get_session_factory
from propcat.errors import StoreError, ValidationError
from propcat.models.contracts import (
    CategoryOut,
    DuplicateCheckResponse,
    ErrorResponse,
    FurnitureBatchResponse,
    FurnitureFilters,
    FurnitureListResponse,
    FurnitureOut,
    SearchResponse,
    TagListResponse,
)

logger = structlog.get_logger()

router = APIRouter(tags=["furniture"])


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@router.get("/furniture", response_model=FurnitureListResponse)
async def list_furniture(
    session: SessionDep,
    actor: OptionalActor,
    favorites: Favorites,
    category: str | None = None,
    tags: str | None = Query(None, description="Comma-joined tag slugs; items must carry all"),
    sort: Literal["name", "price", "newest"] = "name",
    order: Literal["asc", "desc"] = "asc",
    page: int = 1,
    per_page: int | None = None,
    favorites_only: bool = False,
):
    """Paged catalog listing with category/tag/favorites filters."""
    filters = FurnitureFilters(
        category=category,
        tags=_split_csv(tags),
        sort=sort,
        order=order,
        favorites_only=favorites_only,
    )
    try:
        favorite_ids = await favorite_ids_for(favorites_only, actor, favorites)
        return await store.list_furniture(session, filters, page, per_page, favorite_ids)
    except StoreError:
        page, per_page = store.clamp_page(page, per_page)
        return FurnitureListResponse(
            items=[], pagination=store.paginate(0, page, per_page), degraded=True
        )


@router.get(
    "/furniture/search",
    response_model=SearchResponse,
    responses={422: {"model": ErrorResponse}},
)
async def search_furniture(
    request: Request,
    background_tasks: BackgroundTasks,
    session: SessionDep,
    actor: OptionalActor,
    favorites: Favorites,
    q: str = Query("", max_length=200),
    page: int = 1,
    per_page: int | None = None,
    category: str | None = None,
    favorites_only: bool = False,
):
    """Synonym-expanded, ranked search. Queries under two characters are rejected."""
    try:
        favorite_ids = await favorite_ids_for(favorites_only, actor, favorites)
        outcome = await search.search(session, q, page, per_page, category, favorite_ids)
    except StoreError:
        page, per_page = store.clamp_page(page, per_page)
        return SearchResponse(items=[], pagination=store.paginate(0, page, per_page), degraded=True)

    background_tasks.add_task(
        search.record_search,
        get_session_factory(request),
        query=q,
        results_count=outcome.response.pagination.total,
        terms=outcome.terms,
        execution_time_ms=outcome.execution_time_ms,
        user_id=actor.user_id if actor else None,
    )
    return outcome.response


@router.get("/furniture/check-duplicates", response_model=DuplicateCheckResponse)
async def check_duplicates(
    session: SessionDep,
    name: str = Query("", max_length=255),
    category_id: int | None = None,
    exclude_id: int | None = None,
):
    """Likely duplicates of a name being entered. Never an error."""
    try:
        candidates = await duplicates.find_candidates(session, name, category_id, exclude_id)
    except StoreError:
        logger.warning("duplicate_check_failed", name=name[:100], category_id=category_id)
        candidates = []
    return DuplicateCheckResponse(candidates=candidates)


@router.get(
    "/furniture/batch",
    response_model=FurnitureBatchResponse,
    responses={422: {"model": ErrorResponse}},
)
async def get_furniture_batch(session: SessionDep, ids: str = Query(..., max_length=2000)):
    """Several items by id (comma-joined), in the requested order."""
    try:
        furniture_ids = [int(part) for part in _split_csv(ids)]
    except ValueError:
        raise ValidationError("ids must be a comma-separated list of integers") from None
    return FurnitureBatchResponse(items=await store.get_furniture_many(session, furniture_ids))


@router.get(
    "/furniture/{furniture_id}",
    response_model=FurnitureOut,
    responses={404: {"model": ErrorResponse}},
)
async def get_furniture(furniture_id: int, session: SessionDep):
    return await store.get_furniture(session, furniture_id)


@router.get("/categories", response_model=list[CategoryOut])
async def list_categories(session: SessionDep):
    return await taxonomy.list_categories(session)


@router.get("/tags", response_model=TagListResponse)
async def list_tags(session: SessionDep):
    """Tags grouped for filter UIs, plus the ungrouped remainder."""
    return await taxonomy.list_tag_groups(session)

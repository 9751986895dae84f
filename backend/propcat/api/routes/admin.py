"""Staff-only catalog administration.

Direct furniture writes go through the same apply_furniture_payload contract
that approved submissions use.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from propcat.api.deps import SessionDep, require_reviewer
from propcat.catalog import search, store, taxonomy
from propcat.models.contracts import (
    BatchDeleteRequest,
    BatchDeleteResponse,
    CategoryCreateRequest,
    CategoryOut,
    CategoryUpdateRequest,
    ErrorResponse,
    FurnitureOut,
    FurniturePayload,
    ReorderRequest,
    SearchAnalyticsResponse,
    TagCreateRequest,
    TagGroupCreateRequest,
    TagGroupOut,
    TagGroupUpdateRequest,
    TagOut,
    TagUpdateRequest,
)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_reviewer)],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

_WRITE_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}

# === Furniture ===


@router.post("/furniture", status_code=201, response_model=FurnitureOut, responses=_WRITE_ERRORS)
async def create_furniture(payload: FurniturePayload, session: SessionDep):
    return await store.apply_furniture_payload(session, None, payload)


@router.put("/furniture/{furniture_id}", response_model=FurnitureOut, responses=_WRITE_ERRORS)
async def update_furniture(furniture_id: int, payload: FurniturePayload, session: SessionDep):
    """Full replace: categories and tags not in the payload are removed."""
    return await store.apply_furniture_payload(session, furniture_id, payload)


@router.delete("/furniture/{furniture_id}", status_code=204, responses=_WRITE_ERRORS)
async def delete_furniture(furniture_id: int, session: SessionDep):
    await store.delete_furniture(session, furniture_id)
    return Response(status_code=204)


@router.post("/furniture/batch-delete", response_model=BatchDeleteResponse)
async def batch_delete_furniture(body: BatchDeleteRequest, session: SessionDep):
    return BatchDeleteResponse(deleted=await store.delete_furniture_many(session, body.ids))


# === Categories ===


@router.post("/categories", status_code=201, response_model=CategoryOut, responses=_WRITE_ERRORS)
async def create_category(body: CategoryCreateRequest, session: SessionDep):
    return await taxonomy.create_category(session, body)


@router.post("/categories/reorder", response_model=list[CategoryOut], responses=_WRITE_ERRORS)
async def reorder_categories(body: ReorderRequest, session: SessionDep):
    return await taxonomy.reorder_categories(session, body.ids)


@router.put("/categories/{category_id}", response_model=CategoryOut, responses=_WRITE_ERRORS)
async def update_category(category_id: int, body: CategoryUpdateRequest, session: SessionDep):
    return await taxonomy.update_category(session, category_id, body)


@router.delete("/categories/{category_id}", status_code=204, responses=_WRITE_ERRORS)
async def delete_category(category_id: int, session: SessionDep):
    """409 while any furniture still uses the category."""
    await taxonomy.delete_category(session, category_id)
    return Response(status_code=204)


# === Tag groups ===


@router.post("/tag-groups", status_code=201, response_model=TagGroupOut, responses=_WRITE_ERRORS)
async def create_tag_group(body: TagGroupCreateRequest, session: SessionDep):
    return await taxonomy.create_tag_group(session, body)


@router.post("/tag-groups/reorder", response_model=list[TagGroupOut], responses=_WRITE_ERRORS)
async def reorder_tag_groups(body: ReorderRequest, session: SessionDep):
    return await taxonomy.reorder_tag_groups(session, body.ids)


@router.put("/tag-groups/{group_id}", response_model=TagGroupOut, responses=_WRITE_ERRORS)
async def update_tag_group(group_id: int, body: TagGroupUpdateRequest, session: SessionDep):
    return await taxonomy.update_tag_group(session, group_id, body)


@router.delete("/tag-groups/{group_id}", status_code=204, responses=_WRITE_ERRORS)
async def delete_tag_group(group_id: int, session: SessionDep):
    """Tags in the group are kept, ungrouped."""
    await taxonomy.delete_tag_group(session, group_id)
    return Response(status_code=204)


# === Tags ===


@router.get("/tags", response_model=list[TagOut])
async def list_all_tags(session: SessionDep):
    return await taxonomy.list_tags(session)


@router.post("/tags", status_code=201, response_model=TagOut, responses=_WRITE_ERRORS)
async def create_tag(body: TagCreateRequest, session: SessionDep):
    return await taxonomy.create_tag(session, body)


@router.put("/tags/{tag_id}", response_model=TagOut, responses=_WRITE_ERRORS)
async def update_tag(tag_id: int, body: TagUpdateRequest, session: SessionDep):
    return await taxonomy.update_tag(session, tag_id, body)


@router.delete("/tags/{tag_id}", status_code=204, responses=_WRITE_ERRORS)
async def delete_tag(tag_id: int, session: SessionDep):
    await taxonomy.delete_tag(session, tag_id)
    return Response(status_code=204)


# === Search analytics ===


@router.get("/search-analytics", response_model=SearchAnalyticsResponse)
async def search_analytics(session: SessionDep, days: int = 30, limit: int = 20):
    """Most frequent queries and queries that found nothing."""
    days = min(max(days, 1), 365)
    limit = min(max(limit, 1), 100)
    return SearchAnalyticsResponse(
        days=days,
        popular=await search.popular_searches(session, days, limit),
        zero_results=await search.zero_result_searches(session, days, limit),
    )

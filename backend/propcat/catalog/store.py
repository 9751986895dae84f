"""Catalog store: furniture reads and the one furniture write path.

write_furniture is the only code that inserts or updates furniture rows.
Direct admin edits (apply_furniture_payload) and approved submissions
(moderation.approve_submission) both go through it, so the two paths can't
drift apart. An update never merges: the category and tag association sets
are deleted and re-inserted from the payload inside the caller's transaction,
so readers see either the old set or the new one.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from propcat.config import settings
from propcat.database import store_errors, transaction
from propcat.errors import NotFoundError, ValidationError
from propcat.models.contracts import (
    CategoryRef,
    FurnitureFilters,
    FurnitureListResponse,
    FurnitureOut,
    FurniturePayload,
    Pagination,
    TagOut,
)
from propcat.models.db import Category, Furniture, FurnitureCategory, FurnitureTag, Tag

logger = structlog.get_logger()

MAX_BATCH_IDS = 100


# === Pagination ===


def clamp_page(page: int | None, per_page: int | None) -> tuple[int, int]:
    """Normalize 1-indexed page/per_page against the configured bounds."""
    page = max(1, page or 1)
    if not per_page or per_page < 1:
        per_page = settings.default_per_page
    return page, min(per_page, settings.max_items_per_page)


def paginate(total: int, page: int, per_page: int) -> Pagination:
    return Pagination(
        page=page,
        per_page=per_page,
        total=total,
        total_pages=max(1, math.ceil(total / per_page)),
    )


# === Serialization ===


def to_furniture_out(furniture: Furniture) -> FurnitureOut:
    """Build the API shape. Categories are listed primary first, then by sort order."""
    links = sorted(
        furniture.category_links,
        key=lambda link: (not link.is_primary, link.category.sort_order, link.category.name),
    )
    categories = [
        CategoryRef(
            id=link.category.id,
            name=link.category.name,
            slug=link.category.slug,
            icon=link.category.icon,
            is_primary=link.is_primary,
        )
        for link in links
    ]
    primary = categories[0] if categories and categories[0].is_primary else None
    return FurnitureOut(
        id=furniture.id,
        name=furniture.name,
        price=furniture.price,
        image_url=furniture.image_url,
        category_id=primary.id if primary else None,
        category_name=primary.name if primary else None,
        category_slug=primary.slug if primary else None,
        categories=categories,
        tags=[
            TagOut(id=t.id, name=t.name, slug=t.slug, color=t.color, group_id=t.group_id)
            for t in furniture.tags
        ],
        created_at=furniture.created_at,
        updated_at=furniture.updated_at,
    )


# === Write path ===


async def _missing_ids(session: AsyncSession, model: type[Category] | type[Tag], ids: list[int]) -> list[int]:
    if not ids:
        return []
    found = set((await session.scalars(select(model.id).where(model.id.in_(ids)))).all())
    return [i for i in ids if i not in found]


async def write_furniture(
    session: AsyncSession,
    target_id: int | None,
    payload: FurniturePayload,
) -> int:
    """Create (target_id None) or fully replace one furniture item. Does not commit.

    Returns:
        The id of the written furniture row.

    Raises:
        ValidationError: a category or tag id doesn't exist; message lists them.
        NotFoundError: target_id names no furniture.
    """
    problems = []
    bad_categories = await _missing_ids(session, Category, payload.category_ids)
    if bad_categories:
        problems.append("Unknown category ids: " + ", ".join(map(str, bad_categories)))
    bad_tags = await _missing_ids(session, Tag, payload.tag_ids)
    if bad_tags:
        problems.append("Unknown tag ids: " + ", ".join(map(str, bad_tags)))
    if problems:
        raise ValidationError("; ".join(problems))

    values = {"name": payload.name, "price": payload.price, "image_url": payload.image_url}
    if target_id is None:
        furniture = Furniture(**values)
        session.add(furniture)
        await session.flush()
        furniture_id = furniture.id
    else:
        result = await session.execute(
            update(Furniture)
            .where(Furniture.id == target_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Furniture {target_id} not found")
        furniture_id = target_id
        await session.execute(
            delete(FurnitureCategory)
            .where(FurnitureCategory.furniture_id == furniture_id)
            .execution_options(synchronize_session=False)
        )
        await session.execute(
            delete(FurnitureTag)
            .where(FurnitureTag.furniture_id == furniture_id)
            .execution_options(synchronize_session=False)
        )

    await session.execute(
        insert(FurnitureCategory),
        [
            {"furniture_id": furniture_id, "category_id": category_id, "is_primary": index == 0}
            for index, category_id in enumerate(payload.category_ids)
        ],
    )
    if payload.tag_ids:
        await session.execute(
            insert(FurnitureTag),
            [{"furniture_id": furniture_id, "tag_id": tag_id} for tag_id in payload.tag_ids],
        )
    return furniture_id


async def apply_furniture_payload(
    session: AsyncSession,
    target_id: int | None,
    payload: FurniturePayload,
) -> FurnitureOut:
    """Apply a payload to the catalog in its own transaction and return the stored item.

    Retrying a failed create is not idempotent: a create that failed after
    commit (e.g. a dropped connection) may already exist.
    """
    async with transaction(session, "apply_furniture_payload"):
        furniture_id = await write_furniture(session, target_id, payload)
    # Association rows were replaced behind the identity map's back
    session.expunge_all()
    logger.info(
        "furniture_created" if target_id is None else "furniture_updated",
        furniture_id=furniture_id,
        category_count=len(payload.category_ids),
        tag_count=len(payload.tag_ids),
    )
    return await get_furniture(session, furniture_id)


async def delete_furniture(session: AsyncSession, furniture_id: int) -> None:
    async with transaction(session, "delete_furniture"):
        result = await session.execute(
            delete(Furniture)
            .where(Furniture.id == furniture_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Furniture {furniture_id} not found")
    session.expunge_all()
    logger.info("furniture_deleted", furniture_id=furniture_id)


async def delete_furniture_many(session: AsyncSession, furniture_ids: Iterable[int]) -> int:
    ids = sorted(set(furniture_ids))[:MAX_BATCH_IDS]
    async with transaction(session, "delete_furniture_many"):
        result = await session.execute(
            delete(Furniture)
            .where(Furniture.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
    session.expunge_all()
    logger.info("furniture_batch_deleted", requested=len(ids), deleted=result.rowcount)
    return result.rowcount


# === Read path ===


def catalog_conditions(
    category: str | None = None,
    tags: Sequence[str] = (),
    favorite_ids: set[int] | None = None,
) -> list:
    """WHERE clauses shared by listing and search.

    ``tags`` uses AND semantics: an item must carry every listed slug.
    ``favorite_ids`` of None means "don't filter"; an empty set matches nothing.
    """
    conditions = []
    if category:
        conditions.append(
            Furniture.id.in_(
                select(FurnitureCategory.furniture_id)
                .join(Category, Category.id == FurnitureCategory.category_id)
                .where(Category.slug == category)
            )
        )
    slugs = sorted({slug for slug in tags if slug})
    if slugs:
        conditions.append(
            Furniture.id.in_(
                select(FurnitureTag.furniture_id)
                .join(Tag, Tag.id == FurnitureTag.tag_id)
                .where(Tag.slug.in_(slugs))
                .group_by(FurnitureTag.furniture_id)
                .having(func.count(func.distinct(Tag.id)) == len(slugs))
            )
        )
    if favorite_ids is not None:
        conditions.append(Furniture.id.in_(sorted(favorite_ids)))
    return conditions


def _order_by(sort: str, order: str) -> list:
    if sort == "newest":
        return [Furniture.created_at.desc(), Furniture.id.desc()]
    column = Furniture.price if sort == "price" else func.lower(Furniture.name)
    return [column.desc() if order == "desc" else column.asc(), Furniture.id.asc()]


async def list_furniture(
    session: AsyncSession,
    filters: FurnitureFilters,
    page: int | None = None,
    per_page: int | None = None,
    favorite_ids: set[int] | None = None,
) -> FurnitureListResponse:
    """Paged, filtered listing. ``favorite_ids`` only applies when filters.favorites_only."""
    page, per_page = clamp_page(page, per_page)
    conditions = catalog_conditions(
        filters.category,
        filters.tags,
        favorite_ids if filters.favorites_only else None,
    )
    async with store_errors("list_furniture"):
        total = await session.scalar(select(func.count(Furniture.id)).where(*conditions))
        rows = (
            await session.scalars(
                select(Furniture)
                .where(*conditions)
                .order_by(*_order_by(filters.sort, filters.order))
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
        ).all()
    return FurnitureListResponse(
        items=[to_furniture_out(f) for f in rows],
        pagination=paginate(total or 0, page, per_page),
    )


async def get_furniture(session: AsyncSession, furniture_id: int) -> FurnitureOut:
    async with store_errors("get_furniture"):
        furniture = await session.scalar(
            select(Furniture)
            .where(Furniture.id == furniture_id)
            .execution_options(populate_existing=True)
        )
    if furniture is None:
        raise NotFoundError(f"Furniture {furniture_id} not found")
    return to_furniture_out(furniture)


async def get_furniture_many(session: AsyncSession, furniture_ids: Sequence[int]) -> list[FurnitureOut]:
    """Fetch several items, in the requested order. Unknown ids are skipped."""
    ids = list(dict.fromkeys(furniture_ids))[:MAX_BATCH_IDS]
    if not ids:
        return []
    async with store_errors("get_furniture_many"):
        rows = (await session.scalars(select(Furniture).where(Furniture.id.in_(ids)))).all()
    by_id = {f.id: f for f in rows}
    return [to_furniture_out(by_id[i]) for i in ids if i in by_id]

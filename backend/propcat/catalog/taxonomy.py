"""Categories, tag groups and tags: the admin-owned vocabulary furniture is filed under."""

from __future__ import annotations

import re

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from propcat.database import store_errors, transaction
from propcat.errors import ConflictError, NotFoundError, ValidationError
from propcat.models.contracts import (
    CategoryCreateRequest,
    CategoryOut,
    CategoryUpdateRequest,
    TagCreateRequest,
    TagGroupCreateRequest,
    TagGroupOut,
    TagGroupUpdateRequest,
    TagListResponse,
    TagOut,
    TagUpdateRequest,
)
from propcat.models.db import Category, FurnitureCategory, Tag, TagGroup

logger = structlog.get_logger()

DEFAULT_CATEGORY_ICON = "📁"
DEFAULT_COLOR = "#6b7280"


def create_slug(text: str) -> str:
    """URL-safe slug: lowercase, runs of anything outside [a-z0-9-] become one hyphen."""
    slug = re.sub(r"[^a-z0-9-]+", "-", text.lower())
    slug = re.sub(r"-{2,}", "-", slug).strip("-")
    if not slug:
        raise ValidationError(f"Cannot derive a slug from {text!r}")
    return slug


async def _ensure_slug_free(
    session: AsyncSession,
    model: type[Category] | type[TagGroup] | type[Tag],
    slug: str,
    exclude_id: int | None = None,
) -> None:
    stmt = select(model.id).where(model.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    if await session.scalar(stmt) is not None:
        raise ConflictError(f"Slug '{slug}' is already in use")


async def _get_or_404(session: AsyncSession, model, row_id: int, label: str):
    row = await session.get(model, row_id, populate_existing=True)
    if row is None:
        raise NotFoundError(f"{label} {row_id} not found")
    return row


async def _next_sort_order(session: AsyncSession, model: type[Category] | type[TagGroup]) -> int:
    current = await session.scalar(select(func.max(model.sort_order)))
    return (current or 0) + 1


# === Categories ===


def _category_out(category: Category, item_count: int = 0) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        slug=category.slug,
        icon=category.icon,
        sort_order=category.sort_order,
        item_count=item_count,
    )


async def list_categories(session: AsyncSession) -> list[CategoryOut]:
    item_count = func.count(FurnitureCategory.furniture_id)
    async with store_errors("list_categories"):
        rows = (
            await session.execute(
                select(Category, item_count)
                .outerjoin(FurnitureCategory, FurnitureCategory.category_id == Category.id)
                .group_by(Category.id)
                .order_by(Category.sort_order, Category.name)
            )
        ).all()
    return [_category_out(category, count) for category, count in rows]


async def create_category(session: AsyncSession, request: CategoryCreateRequest) -> CategoryOut:
    slug = create_slug(request.slug or request.name)
    async with transaction(session, "create_category"):
        await _ensure_slug_free(session, Category, slug)
        category = Category(
            name=request.name,
            slug=slug,
            icon=request.icon or DEFAULT_CATEGORY_ICON,
            sort_order=(
                request.sort_order
                if request.sort_order is not None
                else await _next_sort_order(session, Category)
            ),
        )
        session.add(category)
    logger.info("category_created", category_id=category.id, slug=slug)
    return _category_out(category)


async def update_category(
    session: AsyncSession, category_id: int, request: CategoryUpdateRequest
) -> CategoryOut:
    async with transaction(session, "update_category"):
        category = await _get_or_404(session, Category, category_id, "Category")
        if request.name is not None:
            category.name = request.name
        if request.slug is not None:
            slug = create_slug(request.slug)
            await _ensure_slug_free(session, Category, slug, exclude_id=category_id)
            category.slug = slug
        if request.icon is not None:
            category.icon = request.icon or DEFAULT_CATEGORY_ICON
        if request.sort_order is not None:
            category.sort_order = request.sort_order
    logger.info("category_updated", category_id=category_id)
    return _category_out(category)


async def delete_category(session: AsyncSession, category_id: int) -> None:
    """Delete an unused category.

    Raises:
        ConflictError: furniture still references it; deleting would leave
            items without a (primary) category.
    """
    async with transaction(session, "delete_category"):
        await _get_or_404(session, Category, category_id, "Category")
        in_use = await session.scalar(
            select(func.count()).where(FurnitureCategory.category_id == category_id)
        )
        if in_use:
            raise ConflictError(f"Category {category_id} is used by {in_use} furniture item(s)")
        await session.execute(delete(Category).where(Category.id == category_id))
    session.expunge_all()
    logger.info("category_deleted", category_id=category_id)


async def _assign_positions(
    session: AsyncSession, model: type[Category] | type[TagGroup], ids: list[int], label: str
) -> None:
    found = set((await session.scalars(select(model.id).where(model.id.in_(ids)))).all())
    unknown = [i for i in ids if i not in found]
    if unknown:
        raise ValidationError(f"Unknown {label} ids: " + ", ".join(map(str, unknown)))
    for position, row_id in enumerate(ids):
        await session.execute(
            update(model)
            .where(model.id == row_id)
            .values(sort_order=position)
            .execution_options(synchronize_session=False)
        )


async def reorder_categories(session: AsyncSession, category_ids: list[int]) -> list[CategoryOut]:
    """Set sort_order from list position. Every id must exist."""
    async with transaction(session, "reorder_categories"):
        await _assign_positions(session, Category, list(dict.fromkeys(category_ids)), "category")
    session.expunge_all()
    return await list_categories(session)


# === Tag groups ===


def _tag_out(tag: Tag) -> TagOut:
    return TagOut(id=tag.id, name=tag.name, slug=tag.slug, color=tag.color, group_id=tag.group_id)


def _group_out(group: TagGroup, with_tags: bool = True) -> TagGroupOut:
    return TagGroupOut(
        id=group.id,
        name=group.name,
        slug=group.slug,
        color=group.color,
        sort_order=group.sort_order,
        tags=[_tag_out(t) for t in group.tags] if with_tags else [],
    )


async def list_tag_groups(session: AsyncSession) -> TagListResponse:
    """Groups in display order with their tags, plus tags that belong to no group."""
    async with store_errors("list_tag_groups"):
        groups = (
            await session.scalars(select(TagGroup).order_by(TagGroup.sort_order, TagGroup.name))
        ).all()
        ungrouped = (
            await session.scalars(select(Tag).where(Tag.group_id.is_(None)).order_by(Tag.name))
        ).all()
    return TagListResponse(
        groups=[_group_out(g) for g in groups],
        ungrouped=[_tag_out(t) for t in ungrouped],
    )


async def create_tag_group(session: AsyncSession, request: TagGroupCreateRequest) -> TagGroupOut:
    slug = create_slug(request.slug or request.name)
    async with transaction(session, "create_tag_group"):
        await _ensure_slug_free(session, TagGroup, slug)
        group = TagGroup(
            name=request.name,
            slug=slug,
            color=request.color or DEFAULT_COLOR,
            sort_order=(
                request.sort_order
                if request.sort_order is not None
                else await _next_sort_order(session, TagGroup)
            ),
        )
        session.add(group)
    logger.info("tag_group_created", group_id=group.id, slug=slug)
    return _group_out(group, with_tags=False)


async def update_tag_group(
    session: AsyncSession, group_id: int, request: TagGroupUpdateRequest
) -> TagGroupOut:
    async with transaction(session, "update_tag_group"):
        group = await _get_or_404(session, TagGroup, group_id, "Tag group")
        if request.name is not None:
            group.name = request.name
        if request.slug is not None:
            slug = create_slug(request.slug)
            await _ensure_slug_free(session, TagGroup, slug, exclude_id=group_id)
            group.slug = slug
        if request.color is not None:
            group.color = request.color
        if request.sort_order is not None:
            group.sort_order = request.sort_order
    return _group_out(group)


async def delete_tag_group(session: AsyncSession, group_id: int) -> int:
    """Delete a group; its tags survive as ungrouped. Returns how many were detached."""
    async with transaction(session, "delete_tag_group"):
        await _get_or_404(session, TagGroup, group_id, "Tag group")
        detached = await session.execute(
            update(Tag)
            .where(Tag.group_id == group_id)
            .values(group_id=None)
            .execution_options(synchronize_session=False)
        )
        await session.execute(delete(TagGroup).where(TagGroup.id == group_id))
    session.expunge_all()
    logger.info("tag_group_deleted", group_id=group_id, detached_tags=detached.rowcount)
    return detached.rowcount


async def reorder_tag_groups(session: AsyncSession, group_ids: list[int]) -> list[TagGroupOut]:
    async with transaction(session, "reorder_tag_groups"):
        await _assign_positions(session, TagGroup, list(dict.fromkeys(group_ids)), "tag group")
    session.expunge_all()
    return (await list_tag_groups(session)).groups


# === Tags ===


async def list_tags(session: AsyncSession) -> list[TagOut]:
    async with store_errors("list_tags"):
        tags = (await session.scalars(select(Tag).order_by(Tag.name))).all()
    return [_tag_out(t) for t in tags]


async def _check_group(session: AsyncSession, group_id: int | None) -> None:
    if group_id is not None and await session.get(TagGroup, group_id) is None:
        raise ValidationError(f"Unknown tag group id: {group_id}")


async def create_tag(session: AsyncSession, request: TagCreateRequest) -> TagOut:
    slug = create_slug(request.slug or request.name)
    async with transaction(session, "create_tag"):
        await _check_group(session, request.group_id)
        await _ensure_slug_free(session, Tag, slug)
        tag = Tag(
            name=request.name,
            slug=slug,
            color=request.color or DEFAULT_COLOR,
            group_id=request.group_id,
        )
        session.add(tag)
    session.expunge_all()
    logger.info("tag_created", tag_id=tag.id, slug=slug, group_id=tag.group_id)
    return _tag_out(tag)


async def update_tag(session: AsyncSession, tag_id: int, request: TagUpdateRequest) -> TagOut:
    async with transaction(session, "update_tag"):
        tag = await _get_or_404(session, Tag, tag_id, "Tag")
        if request.name is not None:
            tag.name = request.name
        if request.slug is not None:
            slug = create_slug(request.slug)
            await _ensure_slug_free(session, Tag, slug, exclude_id=tag_id)
            tag.slug = slug
        if request.color is not None:
            tag.color = request.color
        if "group_id" in request.model_fields_set:
            await _check_group(session, request.group_id)
            tag.group_id = request.group_id
    session.expunge_all()
    return _tag_out(tag)


async def delete_tag(session: AsyncSession, tag_id: int) -> None:
    """Delete a tag; its furniture associations go with it."""
    async with transaction(session, "delete_tag"):
        await _get_or_404(session, Tag, tag_id, "Tag")
        await session.execute(delete(Tag).where(Tag.id == tag_id))
    session.expunge_all()
    logger.info("tag_deleted", tag_id=tag_id)

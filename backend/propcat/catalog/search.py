"""Search & matching engine.

A query is normalized, expanded through the synonym table, and matched as a
substring against furniture names and the names of each item's categories
and tags. Ranking is a SQL CASE so pagination stays in the database:

    0  name equals the query
    1  name contains the query
    2  name contains an expanded term
    3  only a category/tag name matched

Ties sort by lower(name), then id, so pages are stable. A search that finds
nothing may carry a spelling fix and, when unfiltered, a likely category.
"""

from __future__ import annotations

import re
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import case, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from propcat.catalog.store import catalog_conditions, clamp_page, paginate, to_furniture_out
from propcat.catalog.synonyms import expand_query, normalize_query, stem, suggest
from propcat.config import settings
from propcat.database import store_errors
from propcat.errors import ValidationError
from propcat.models.contracts import SearchMeta, SearchResponse, SearchTermStat
from propcat.models.db import Category, Furniture, FurnitureCategory, FurnitureTag, SearchLog, Tag

logger = structlog.get_logger()

_SYNONYM_HINT_LIMIT = 5
_LIKE_ESCAPE = "\\"
_SUGGEST_MIN_SCORE = 3.0
_KEYWORD_SPLIT = re.compile(r"[\s\-&()]+")
_NAME_STOP_WORDS = frozenset({"and", "the", "a", "an", "of", "for", "with"})
_TAG_STOP_WORDS = _NAME_STOP_WORDS | {"type", "style", "purpose", "or", "in", "on", "at", "to", "from"}


@dataclass
class SearchOutcome:
    response: SearchResponse
    terms: list[str] = field(default_factory=list)
    execution_time_ms: int = 0


def _contains(term: str) -> str:
    escaped = (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _did_you_mean(normalized: str) -> str | None:
    words = normalized.split()
    fixed = [suggest(word) or word for word in words]
    return " ".join(fixed) if fixed != words else None


def _category_keywords(slug: str, name: str, tag_names: list[str]) -> dict[str, float]:
    """Weighted keywords describing one category: its slug, its name, and tags its furniture carries."""
    keywords: dict[str, float] = {}

    def add(word: str, weight: float) -> None:
        if len(word) >= 2 and weight > keywords.get(word, 0.0):
            keywords[word] = weight

    slug_words = [w for w in re.split(r"[\s\-&]+", slug.lower()) if w]
    for word in slug_words:
        add(word, 5.0)
    for word in _KEYWORD_SPLIT.split(name.lower()):
        if word not in _NAME_STOP_WORDS:
            add(word, 6.0)
    if len(slug_words) > 1:
        # "tables-desks" also answers to "table" and "desk"
        for word in slug_words:
            singular = stem(word)
            if len(word) > 3 and singular != word and singular not in keywords:
                add(singular, 4.5)
    for tag_name in tag_names:
        tag_name = tag_name.lower().strip()
        add(re.sub(r"\s*\([^)]*\)\s*", "", tag_name), 4.5)
        for word in _KEYWORD_SPLIT.split(tag_name):
            if word not in _TAG_STOP_WORDS:
                add(word, 4.0)
    return keywords


def _category_score(query: str, keywords: dict[str, float]) -> float:
    score = 0.0
    for keyword, weight in keywords.items():
        if query == keyword:
            score += weight * 10
        elif len(query) >= 3 and len(keyword) >= 3 and (keyword in query or query in keyword):
            score += weight * 6
    for word in query.split():
        word_stem = stem(word)
        for keyword, weight in keywords.items():
            if word == keyword:
                score += weight * 5
            elif word_stem == stem(keyword):
                score += weight * 3
            elif len(word) >= 3 and len(keyword) >= 3 and (keyword in word or word in keyword):
                score += weight * 1.5
    return score


async def suggest_category(session: AsyncSession, normalized: str) -> str | None:
    """Slug of the category a fruitless query most likely meant, or None.

    Ties go to the category listed first in sort order.
    """
    async with store_errors("suggest_category"):
        categories = (
            await session.execute(
                select(Category.id, Category.slug, Category.name).order_by(Category.sort_order, Category.id)
            )
        ).all()
        tag_rows = (
            await session.execute(
                select(FurnitureCategory.category_id, Tag.name)
                .join(FurnitureTag, FurnitureTag.furniture_id == FurnitureCategory.furniture_id)
                .join(Tag, Tag.id == FurnitureTag.tag_id)
                .distinct()
            )
        ).all()
    tags_by_category: dict[int, list[str]] = defaultdict(list)
    for row in tag_rows:
        tags_by_category[row.category_id].append(row.name)

    best_slug, best_score = None, 0.0
    for category in categories:
        keywords = _category_keywords(category.slug, category.name, tags_by_category[category.id])
        score = _category_score(normalized, keywords)
        if score > best_score:
            best_slug, best_score = category.slug, score
    return best_slug if best_score >= _SUGGEST_MIN_SCORE else None


async def search(
    session: AsyncSession,
    query: str,
    page: int | None = None,
    per_page: int | None = None,
    category: str | None = None,
    favorite_ids: set[int] | None = None,
) -> SearchOutcome:
    """Ranked, paginated search.

    Raises:
        ValidationError: the normalized query is shorter than min_search_length.
    """
    started = time.perf_counter()
    normalized = normalize_query(query)
    if len(normalized) < settings.min_search_length:
        raise ValidationError(
            f"Search query must be at least {settings.min_search_length} characters"
        )
    page, per_page = clamp_page(page, per_page)
    terms = expand_query(normalized, settings.max_search_terms)

    name = func.lower(Furniture.name)
    name_hits = [name.like(_contains(term), escape=_LIKE_ESCAPE) for term in terms]
    category_hit = Furniture.id.in_(
        select(FurnitureCategory.furniture_id)
        .join(Category, Category.id == FurnitureCategory.category_id)
        .where(or_(*[func.lower(Category.name).like(_contains(t), escape=_LIKE_ESCAPE) for t in terms]))
    )
    tag_hit = Furniture.id.in_(
        select(FurnitureTag.furniture_id)
        .join(Tag, Tag.id == FurnitureTag.tag_id)
        .where(or_(*[func.lower(Tag.name).like(_contains(t), escape=_LIKE_ESCAPE) for t in terms]))
    )
    relevance = case(
        (name == normalized, 0),
        (name.like(_contains(normalized), escape=_LIKE_ESCAPE), 1),
        (or_(*name_hits), 2),
        else_=3,
    )
    conditions = [or_(*name_hits, category_hit, tag_hit), *catalog_conditions(category, (), favorite_ids)]

    async with store_errors("search"):
        total = await session.scalar(select(func.count(Furniture.id)).where(*conditions)) or 0
        rows = (
            await session.scalars(
                select(Furniture)
                .where(*conditions)
                .order_by(relevance, name, Furniture.id)
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
        ).all()

    meta = None
    synonyms_used = [t for t in terms if t != normalized]
    did_you_mean = suggested_category = None
    if total == 0:
        did_you_mean = _did_you_mean(normalized)
        if category is None:
            suggested_category = await suggest_category(session, normalized)
    if synonyms_used or did_you_mean or suggested_category:
        meta = SearchMeta(
            original=normalized,
            synonyms_used=synonyms_used[:_SYNONYM_HINT_LIMIT],
            total_terms=len(terms),
            did_you_mean=did_you_mean,
            suggested_category=suggested_category,
        )

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    logger.debug("search_complete", query=normalized, total=total, terms=len(terms), elapsed_ms=elapsed_ms)
    return SearchOutcome(
        response=SearchResponse(
            items=[to_furniture_out(f) for f in rows],
            pagination=paginate(total, page, per_page),
            search_meta=meta,
        ),
        terms=terms,
        execution_time_ms=elapsed_ms,
    )


async def record_search(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    query: str,
    results_count: int,
    terms: list[str],
    execution_time_ms: int | None = None,
    user_id: int | None = None,
) -> None:
    """Store one search_log row. Runs after the response; never raises."""
    if not settings.search_logging_enabled:
        return
    try:
        async with session_factory() as session:
            session.add(
                SearchLog(
                    query=query[:255],
                    query_normalized=normalize_query(query)[:255],
                    results_count=results_count,
                    expanded_terms=terms[: settings.max_search_terms] or None,
                    execution_time_ms=execution_time_ms,
                    user_id=user_id,
                )
            )
            await session.commit()
    except Exception as exc:
        logger.warning("search_log_failed", query=query[:255], error=str(exc))


async def _term_stats(session: AsyncSession, days: int, limit: int, zero_only: bool) -> list[SearchTermStat]:
    since = datetime.now(UTC) - timedelta(days=days)
    searches = func.count(SearchLog.id).label("searches")
    stmt = (
        select(
            SearchLog.query_normalized,
            searches,
            func.avg(SearchLog.results_count).label("avg_results"),
        )
        .where(SearchLog.created_at >= since)
        .group_by(SearchLog.query_normalized)
        .order_by(desc(searches), SearchLog.query_normalized)
        .limit(limit)
    )
    if zero_only:
        stmt = stmt.where(SearchLog.results_count == 0)
    async with store_errors("search_analytics"):
        rows = (await session.execute(stmt)).all()
    return [
        SearchTermStat(query=row.query_normalized, searches=row.searches, avg_results=float(row.avg_results or 0))
        for row in rows
    ]


async def popular_searches(session: AsyncSession, days: int = 30, limit: int = 20) -> list[SearchTermStat]:
    return await _term_stats(session, days, limit, zero_only=False)


async def zero_result_searches(session: AsyncSession, days: int = 30, limit: int = 20) -> list[SearchTermStat]:
    """Queries that found nothing: gaps in the catalog or the synonym table."""
    return await _term_stats(session, days, limit, zero_only=True)

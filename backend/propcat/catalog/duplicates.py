"""Duplicate-candidate detection for furniture names.

Names are normalized (case-folded, punctuation runs replaced by a space) and
scored with rapidfuzz as the mean of two measures on a 0-100 scale:

- token_set_ratio: word overlap, insensitive to word order;
- normalized Levenshtein similarity: tolerant of small typos.

Candidates at or above ``settings.duplicate_similarity_threshold`` qualify.
The result is advisory: callers show it as a warning, never as a gate.
"""

from __future__ import annotations

import re

import structlog
from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from propcat.catalog.store import to_furniture_out
from propcat.config import settings
from propcat.database import store_errors
from propcat.models.contracts import DuplicateCandidate
from propcat.models.db import Furniture, FurnitureCategory

logger = structlog.get_logger()

_NON_ALNUM = re.compile(r"[\W_]+")


def normalize_name(name: str) -> str:
    return " ".join(_NON_ALNUM.sub(" ", name.casefold()).split())


def similarity(a: str, b: str) -> float:
    """Score two already-normalized names, 0-100."""
    if not a or not b:
        return 0.0
    if a == b:
        return 100.0
    overlap = fuzz.token_set_ratio(a, b)
    edit = Levenshtein.normalized_similarity(a, b) * 100
    return (overlap + edit) / 2


async def find_candidates(
    session: AsyncSession,
    name: str,
    category_id: int | None = None,
    exclude_id: int | None = None,
) -> list[DuplicateCandidate]:
    """Existing furniture likely to be the same item as ``name``.

    Names shorter than ``duplicate_min_length`` return [] without a query.
    ``category_id`` restricts the pool to items carrying that category;
    ``exclude_id`` keeps an item being edited from matching itself.
    """
    if len(name.strip()) < settings.duplicate_min_length:
        return []
    target = normalize_name(name)
    if not target:
        return []

    pool = select(Furniture.id, Furniture.name)
    if category_id is not None:
        pool = pool.where(
            Furniture.id.in_(
                select(FurnitureCategory.furniture_id).where(
                    FurnitureCategory.category_id == category_id
                )
            )
        )
    if exclude_id is not None:
        pool = pool.where(Furniture.id != exclude_id)

    async with store_errors("find_duplicates"):
        rows = (await session.execute(pool)).all()

    scored = []
    for row in rows:
        score = similarity(target, normalize_name(row.name))
        if score >= settings.duplicate_similarity_threshold:
            scored.append((score, row.name.casefold(), row.id))
    scored.sort(key=lambda item: (-item[0], item[1], item[2]))
    top = scored[: settings.duplicate_limit]
    if not top:
        return []

    ids = [furniture_id for _, _, furniture_id in top]
    async with store_errors("find_duplicates"):
        items = (await session.scalars(select(Furniture).where(Furniture.id.in_(ids)))).all()
    by_id = {f.id: f for f in items}
    candidates = [
        DuplicateCandidate(
            **to_furniture_out(by_id[furniture_id]).model_dump(),
            similarity=round(score, 1),
        )
        for score, _, furniture_id in top
        if furniture_id in by_id
    ]
    logger.debug("duplicate_check", name=target, pool=len(rows), candidates=len(candidates))
    return candidates

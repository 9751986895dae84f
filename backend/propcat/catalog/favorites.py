"""Favorites lookup consumed by the favorites-only listing/search filter.

Favorites are written by the collections service; this side only ever asks
for a user's id set.
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from propcat.database import store_errors
from propcat.models.db import Favorite


class FavoritesStore(Protocol):
    async def favorite_ids(self, user_id: int) -> set[int]: ...


class SqlFavoritesStore:
    """Reads the shared ``favorites`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def favorite_ids(self, user_id: int) -> set[int]:
        async with store_errors("favorite_ids"):
            rows = await self._session.scalars(
                select(Favorite.furniture_id).where(Favorite.user_id == user_id)
            )
            return set(rows.all())

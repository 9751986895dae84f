"""Request dependencies: caller identity and the favorites lookup.

Authentication happens upstream. The gateway forwards the authenticated user
as ``X-User-Id`` and their role as ``X-User-Role``; requests without the id
are anonymous.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from propcat.catalog.favorites import FavoritesStore, SqlFavoritesStore
from propcat.database import get_session
from propcat.errors import AuthenticationRequired, AuthorizationError
from propcat.models.contracts import Actor

SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor | None:
    if not x_user_id:
        return None
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise AuthenticationRequired("Malformed X-User-Id header") from None
    if user_id <= 0:
        raise AuthenticationRequired("Malformed X-User-Id header")
    role = "admin" if (x_user_role or "").strip().lower() == "admin" else "user"
    return Actor(user_id=user_id, role=role)


async def require_actor(actor: Annotated[Actor | None, Depends(get_actor)]) -> Actor:
    if actor is None:
        raise AuthenticationRequired()
    return actor


async def require_reviewer(actor: Annotated[Actor, Depends(require_actor)]) -> Actor:
    if not actor.is_reviewer:
        raise AuthorizationError("Reviewer role required")
    return actor


def get_favorites_store(session: SessionDep) -> FavoritesStore:
    return SqlFavoritesStore(session)


async def favorite_ids_for(
    favorites_only: bool,
    actor: Actor | None,
    favorites: FavoritesStore,
) -> set[int] | None:
    """Id set for the favorites-only filter, or None when the filter is off."""
    if not favorites_only:
        return None
    if actor is None:
        raise AuthenticationRequired("Sign in to filter by favorites")
    return await favorites.favorite_ids(actor.user_id)


OptionalActor = Annotated[Actor | None, Depends(get_actor)]
CurrentActor = Annotated[Actor, Depends(require_actor)]
Reviewer = Annotated[Actor, Depends(require_reviewer)]
Favorites = Annotated[FavoritesStore, Depends(get_favorites_store)]

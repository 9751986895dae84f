"""Shared fixtures: an in-memory SQLite catalog and an HTTP client bound to it."""

from __future__ import annotations

import httpx
import pytest
from sqlalchemy.pool import StaticPool

from propcat.catalog import store
from propcat.database import build_session_factory, create_engine, init_models
from propcat.main import app
from propcat.models.contracts import Actor, FurniturePayload
from propcat.models.db import Category, Tag, TagGroup


@pytest.fixture
async def engine():
    """Fresh in-memory database per test; StaticPool keeps one shared connection."""
    engine = create_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session_factory) -> dict[str, int]:
    """Categories, tag groups and tags; returns ids keyed by slug."""
    async with session_factory() as s:
        style = TagGroup(name="Style", slug="style", color="#ef4444", sort_order=1)
        material = TagGroup(name="Material", slug="material", color="#22c55e", sort_order=2)
        s.add_all([style, material])
        await s.flush()
        rows = [
            Category(name="Seating", slug="seating", icon="🪑", sort_order=1),
            Category(name="Tables", slug="tables", icon="🪵", sort_order=2),
            Category(name="Storage", slug="storage", icon="📦", sort_order=3),
            Tag(name="Modern", slug="modern", group_id=style.id),
            Tag(name="Rustic", slug="rustic", group_id=style.id),
            Tag(name="Wood", slug="wood", group_id=material.id),
            Tag(name="Outdoor", slug="outdoor"),
        ]
        s.add_all(rows)
        await s.commit()
        ids = {row.slug: row.id for row in rows}
        ids["style"] = style.id
        ids["material"] = material.id
    return ids


@pytest.fixture
def make_furniture(session, seeded):
    """Create furniture through the real write path."""

    async def _make(name, categories=("seating",), tags=(), price=0, image_url=None):
        payload = FurniturePayload(
            name=name,
            price=price,
            image_url=image_url,
            category_ids=[seeded[c] for c in categories],
            tag_ids=[seeded[t] for t in tags],
        )
        return await store.apply_furniture_payload(session, None, payload)

    return _make


@pytest.fixture
def member() -> Actor:
    return Actor(user_id=7)


@pytest.fixture
def other_member() -> Actor:
    return Actor(user_id=8)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=1, role="admin")


@pytest.fixture
async def client(session_factory):
    """App client sharing the test database."""
    app.state.session_factory = session_factory
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.state.session_factory = None

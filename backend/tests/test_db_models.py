"""Tests for SQLAlchemy ORM models.

Validates that:
- All models are importable and registered with Base.metadata
- Foreign keys use the intended delete behavior
- Required indexes and constraints exist
- Database-level invariants hold on a real (SQLite) connection
"""

import pytest
from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError

from propcat.models.db import (
    Base,
    Category,
    Favorite,
    Furniture,
    FurnitureCategory,
    FurnitureTag,
    SearchLog,
    Submission,
    Tag,
    TagGroup,
)


def _fk(table, column):
    return next(iter(table.c[column].foreign_keys))


def _index_names(table):
    return {index.name for index in table.indexes}


class TestAllTablesRegistered:
    """Verify all expected tables exist in Base.metadata."""

    def test_table_names(self):
        """All 9 catalog tables are registered."""
        expected_tables = {
            "categories",
            "tag_groups",
            "tags",
            "furniture",
            "furniture_categories",
            "furniture_tags",
            "submissions",
            "favorites",
            "search_log",
        }
        assert set(Base.metadata.tables.keys()) == expected_tables


class TestCategoryModel:
    """Categories are slugged and ordered."""

    def test_slug_unique(self):
        """Slug column carries a unique constraint."""
        assert Category.__table__.c.slug.unique

    def test_sort_index(self):
        """Display order is indexed."""
        assert "idx_categories_sort" in _index_names(Category.__table__)


class TestTagModels:
    """Tags optionally belong to a group."""

    def test_group_fk_sets_null(self):
        """Deleting a group ungroups its tags instead of deleting them."""
        fk = _fk(Tag.__table__, "group_id")
        assert fk.column.table.name == "tag_groups"
        assert fk.ondelete == "SET NULL"

    def test_group_nullable(self):
        """A tag without a group is valid."""
        assert Tag.__table__.c.group_id.nullable

    def test_group_default_color(self):
        """Groups default to neutral gray."""
        assert TagGroup.__table__.c.color.default.arg == "#6b7280"


class TestFurnitureModel:
    """Furniture rows and their association tables."""

    def test_indexes(self):
        """Name, price and created_at are indexed for sorting."""
        names = _index_names(Furniture.__table__)
        assert {"idx_furniture_name", "idx_furniture_price", "idx_furniture_created_at"} <= names

    def test_price_check_constraint(self):
        """Negative prices are rejected by the schema."""
        constraints = {c.name for c in Furniture.__table__.constraints}
        assert "ck_furniture_price_non_negative" in constraints

    def test_association_fks_cascade(self):
        """Deleting furniture removes its category and tag links."""
        assert _fk(FurnitureCategory.__table__, "furniture_id").ondelete == "CASCADE"
        assert _fk(FurnitureTag.__table__, "furniture_id").ondelete == "CASCADE"
        assert _fk(FurnitureTag.__table__, "tag_id").ondelete == "CASCADE"

    def test_single_primary_index(self):
        """A partial unique index allows one primary category per item."""
        index = next(
            i for i in FurnitureCategory.__table__.indexes if i.name == "uq_furniture_categories_primary"
        )
        assert index.unique
        assert [c.name for c in index.columns] == ["furniture_id"]

    def test_composite_primary_keys(self):
        """Association rows are keyed by both ids."""
        pk = [c.name for c in FurnitureCategory.__table__.primary_key.columns]
        assert pk == ["furniture_id", "category_id"]
        pk = [c.name for c in FurnitureTag.__table__.primary_key.columns]
        assert pk == ["furniture_id", "tag_id"]


class TestSubmissionModel:
    """Submissions reference furniture only for edits."""

    def test_constraints(self):
        """Type, status and type/target checks are declared."""
        constraints = {c.name for c in Submission.__table__.constraints}
        assert {
            "ck_submissions_type",
            "ck_submissions_status",
            "ck_submissions_type_target",
        } <= constraints

    def test_furniture_fk_cascades(self):
        """Edit submissions go away with their target."""
        assert _fk(Submission.__table__, "furniture_id").ondelete == "CASCADE"

    def test_review_queue_index(self):
        """The pending queue (status, created_at) is indexed."""
        assert "idx_submissions_status_created" in _index_names(Submission.__table__)


class TestAuxiliaryTables:
    """Favorites and the search log."""

    def test_favorites_primary_key(self):
        """A user can favorite an item once."""
        pk = [c.name for c in Favorite.__table__.primary_key.columns]
        assert pk == ["user_id", "furniture_id"]

    def test_search_log_indexes(self):
        """Analytics group by normalized query within a time window."""
        names = _index_names(SearchLog.__table__)
        assert {"idx_search_log_query", "idx_search_log_created_at"} <= names


class TestSchemaEnforcement:
    """Constraints enforced by a live database."""

    @pytest.mark.asyncio
    async def test_second_primary_rejected(self, session, seeded):
        """Two primary rows for one item violate the partial unique index."""
        furniture = Furniture(name="Bench", price=10)
        session.add(furniture)
        await session.flush()
        await session.execute(
            insert(FurnitureCategory),
            [{"furniture_id": furniture.id, "category_id": seeded["seating"], "is_primary": True}],
        )
        with pytest.raises(IntegrityError):
            await session.execute(
                insert(FurnitureCategory),
                [{"furniture_id": furniture.id, "category_id": seeded["tables"], "is_primary": True}],
            )
        await session.rollback()

    @pytest.mark.asyncio
    async def test_new_submission_with_target_rejected(self, session, seeded):
        """type=new with a furniture_id violates the type/target check."""
        furniture = Furniture(name="Bench", price=10)
        session.add(furniture)
        await session.flush()
        session.add(
            Submission(user_id=7, type="new", furniture_id=furniture.id, payload={"name": "x"})
        )
        with pytest.raises(IntegrityError):
            await session.flush()
        await session.rollback()

    @pytest.mark.asyncio
    async def test_negative_price_rejected(self, session):
        """The price check constraint fires on insert."""
        session.add(Furniture(name="Free money", price=-1))
        with pytest.raises(IntegrityError):
            await session.flush()
        await session.rollback()

    @pytest.mark.asyncio
    async def test_deleting_furniture_cascades(self, session, make_furniture):
        """Links, favorites and edit submissions are removed with the item."""
        item = await make_furniture("Oak Stool", tags=("wood",))
        session.add(Favorite(user_id=7, furniture_id=item.id))
        session.add(Submission(user_id=7, type="edit", furniture_id=item.id, payload={"name": "x"}))
        await session.commit()

        await session.execute(Furniture.__table__.delete().where(Furniture.id == item.id))
        await session.commit()

        for model in (FurnitureCategory, FurnitureTag, Favorite, Submission):
            rows = (await session.scalars(select(model).where(model.furniture_id == item.id))).all()
            assert rows == []

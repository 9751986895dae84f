"""SQLAlchemy ORM models for the prop catalog.

Design principle: furniture rows and their category/tag associations are only
written through catalog.store.write_furniture, which replaces the association
sets wholesale. The relationships declared here are therefore view-only.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (Index("idx_categories_sort", "sort_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="📁")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )


class TagGroup(Base):
    __tablename__ = "tag_groups"
    __table_args__ = (Index("idx_tag_groups_sort", "sort_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    slug: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#6b7280")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    tags: Mapped[list["Tag"]] = relationship(viewonly=True, lazy="selectin", order_by="Tag.name")


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (Index("idx_tags_group", "group_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    slug: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#6b7280")
    group_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tag_groups.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )


class Furniture(Base):
    __tablename__ = "furniture"
    __table_args__ = (
        Index("idx_furniture_name", "name"),
        Index("idx_furniture_price", "price"),
        Index("idx_furniture_created_at", "created_at"),
        CheckConstraint("price >= 0", name="ck_furniture_price_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )

    category_links: Mapped[list["FurnitureCategory"]] = relationship(
        viewonly=True, lazy="selectin"
    )
    tags: Mapped[list["Tag"]] = relationship(
        secondary="furniture_tags", viewonly=True, lazy="selectin", order_by="Tag.name"
    )


class FurnitureCategory(Base):
    __tablename__ = "furniture_categories"
    __table_args__ = (
        Index("idx_furniture_categories_category", "category_id"),
        # At most one primary per item; write_furniture guarantees at least one.
        Index(
            "uq_furniture_categories_primary",
            "furniture_id",
            unique=True,
            postgresql_where=text("is_primary"),
            sqlite_where=text("is_primary"),
        ),
    )

    furniture_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("furniture.id", ondelete="CASCADE"), primary_key=True
    )
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    category: Mapped["Category"] = relationship(lazy="joined", viewonly=True)


class FurnitureTag(Base):
    __tablename__ = "furniture_tags"
    __table_args__ = (Index("idx_furniture_tags_tag", "tag_id"),)

    furniture_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("furniture.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        Index("idx_submissions_user", "user_id"),
        Index("idx_submissions_status_created", "status", "created_at"),
        CheckConstraint("type IN ('new', 'edit')", name="ck_submissions_type"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_submissions_status"
        ),
        CheckConstraint(
            "(type = 'edit' AND furniture_id IS NOT NULL)"
            " OR (type = 'new' AND furniture_id IS NULL)",
            name="ck_submissions_type_target",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)  # new | edit
    # Edits of a deleted item go with it, keeping type=edit => furniture_id set
    furniture_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("furniture.id", ondelete="CASCADE"), nullable=True
    )
    payload: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="pending")
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )


class Favorite(Base):
    """Read-only here: written by the collections service."""

    __tablename__ = "favorites"
    __table_args__ = (Index("idx_favorites_furniture", "furniture_id"),)

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    furniture_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("furniture.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )


class SearchLog(Base):
    __tablename__ = "search_log"
    __table_args__ = (
        Index("idx_search_log_query", "query_normalized"),
        Index("idx_search_log_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query: Mapped[str] = mapped_column(String(255), nullable=False)
    query_normalized: Mapped[str] = mapped_column(String(255), nullable=False)
    results_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expanded_terms: Mapped[list | None] = mapped_column(JSONDocument, nullable=True)
    execution_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

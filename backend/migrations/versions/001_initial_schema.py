"""Initial schema: the 9 catalog tables matching db.py models.

Revision ID: 001
Revises: (none)
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # --- categories ---
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("icon", sa.String(50), server_default="📁", nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("idx_categories_sort", "categories", ["sort_order"])

    # --- tag_groups ---
    op.create_table(
        "tag_groups",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("slug", sa.String(50), nullable=False, unique=True),
        sa.Column("color", sa.String(7), server_default="#6b7280", nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("idx_tag_groups_sort", "tag_groups", ["sort_order"])

    # --- tags ---
    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("slug", sa.String(50), nullable=False, unique=True),
        sa.Column("color", sa.String(7), server_default="#6b7280", nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("tag_groups.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("created_at"),
    )
    op.create_index("idx_tags_group", "tags", ["group_id"])

    # --- furniture ---
    op.create_table(
        "furniture",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Integer(), server_default="0", nullable=False),
        sa.Column("image_url", sa.String(500), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("price >= 0", name="ck_furniture_price_non_negative"),
    )
    op.create_index("idx_furniture_name", "furniture", ["name"])
    op.create_index("idx_furniture_price", "furniture", ["price"])
    op.create_index("idx_furniture_created_at", "furniture", ["created_at"])

    # --- furniture_categories ---
    op.create_table(
        "furniture_categories",
        sa.Column(
            "furniture_id",
            sa.Integer(),
            sa.ForeignKey("furniture.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    )
    op.create_index(
        "idx_furniture_categories_category", "furniture_categories", ["category_id"],
    )
    op.create_index(
        "uq_furniture_categories_primary",
        "furniture_categories",
        ["furniture_id"],
        unique=True,
        postgresql_where=sa.text("is_primary"),
    )

    # --- furniture_tags ---
    op.create_table(
        "furniture_tags",
        sa.Column(
            "furniture_id",
            sa.Integer(),
            sa.ForeignKey("furniture.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_index("idx_furniture_tags_tag", "furniture_tags", ["tag_id"])

    # --- submissions ---
    op.create_table(
        "submissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column(
            "furniture_id",
            sa.Integer(),
            sa.ForeignKey("furniture.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("payload", JSONB(), nullable=False),
        sa.Column("status", sa.String(10), server_default="pending", nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("type IN ('new', 'edit')", name="ck_submissions_type"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_submissions_status"
        ),
        sa.CheckConstraint(
            "(type = 'edit' AND furniture_id IS NOT NULL)"
            " OR (type = 'new' AND furniture_id IS NULL)",
            name="ck_submissions_type_target",
        ),
    )
    op.create_index("idx_submissions_user", "submissions", ["user_id"])
    op.create_index(
        "idx_submissions_status_created", "submissions", ["status", "created_at"],
    )

    # --- favorites ---
    op.create_table(
        "favorites",
        sa.Column("user_id", sa.Integer(), primary_key=True),
        sa.Column(
            "furniture_id",
            sa.Integer(),
            sa.ForeignKey("furniture.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        _timestamp("created_at"),
    )
    op.create_index("idx_favorites_furniture", "favorites", ["furniture_id"])

    # --- search_log ---
    op.create_table(
        "search_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("query", sa.String(255), nullable=False),
        sa.Column("query_normalized", sa.String(255), nullable=False),
        sa.Column("results_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("expanded_terms", JSONB(), nullable=True),
        sa.Column("execution_time_ms", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("idx_search_log_query", "search_log", ["query_normalized"])
    op.create_index("idx_search_log_created_at", "search_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("search_log")
    op.drop_table("favorites")
    op.drop_table("submissions")
    op.drop_table("furniture_tags")
    op.drop_table("furniture_categories")
    op.drop_table("furniture")
    op.drop_table("tags")
    op.drop_table("tag_groups")
    op.drop_table("categories")

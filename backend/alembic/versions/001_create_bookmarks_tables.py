"""Create bookmarks, tags and bookmark_tags tables

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Initial schema for the bookmark directory.
       bookmarks ──< bookmark_tags >── tags
How:   String(36) UUID keys generated by the application, TIMESTAMP WITH TIME
       ZONE columns, cascade deletes from the join table.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "bookmarks",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("url", sa.Text(), nullable=False, comment="Normalized URL"),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
            comment="Moderation state: pending, approved, rejected",
        ),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column(
            "image_source",
            sa.String(20),
            nullable=True,
            comment="Preview image origin: og, screenshot, fallback",
        ),
        sa.Column("submitter_name", sa.String(100), nullable=True),
        sa.Column("submitter_github_url", sa.Text(), nullable=True),
        sa.Column("metadata", sa.Text(), nullable=True, comment="Extraction diagnostics (JSON)"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_bookmarks_url", "bookmarks", ["url"], unique=True)
    op.create_index("idx_bookmarks_status", "bookmarks", ["status"])
    op.create_index("idx_bookmarks_created_at", "bookmarks", [sa.text("created_at DESC")])

    op.create_table(
        "tags",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("idx_tags_name", "tags", ["name"])

    op.create_table(
        "bookmark_tags",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("bookmark_id", sa.String(36), nullable=False),
        sa.Column("tag_id", sa.String(36), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["bookmark_id"], ["bookmarks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bookmark_id", "tag_id", name="uq_bookmark_tags_bookmark_tag"),
    )
    op.create_index("idx_bookmark_tags_bookmark_id", "bookmark_tags", ["bookmark_id"])
    op.create_index("idx_bookmark_tags_tag_id", "bookmark_tags", ["tag_id"])


def downgrade() -> None:
    """Drops all bookmark data. Join table first for the foreign keys."""
    op.drop_index("idx_bookmark_tags_tag_id", table_name="bookmark_tags")
    op.drop_index("idx_bookmark_tags_bookmark_id", table_name="bookmark_tags")
    op.drop_table("bookmark_tags")
    op.drop_index("idx_tags_name", table_name="tags")
    op.drop_table("tags")
    op.drop_index("idx_bookmarks_created_at", table_name="bookmarks")
    op.drop_index("idx_bookmarks_status", table_name="bookmarks")
    op.drop_index("idx_bookmarks_url", table_name="bookmarks")
    op.drop_table("bookmarks")

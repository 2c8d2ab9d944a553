"""
MakerBench Backend — Bookmark, Tag and BookmarkTag SQLAlchemy Models
=====================================================================

What:  ORM models for the `bookmarks`, `tags` and `bookmark_tags` tables.
How:   Inherits from SQLAlchemy's DeclarativeBase; Alembic reads this for migrations.
Who:   Used by the search, tag and bookmark services and by Alembic.

Table Design:
    bookmarks ──< bookmark_tags >── tags

    - String(36) UUID keys generated in Python, so SQLite and PostgreSQL
      behave the same in tests and production.
    - bookmark_tags carries a UNIQUE (bookmark_id, tag_id) pair and cascades
      deletes from either side.
    - tags.name is UNIQUE and always stored normalized (lowercase, hyphenated).

    No ORM relationships are declared: the search layer builds its joins
    explicitly so pagination can be applied to bookmarks before tags are
    joined in.
"""

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from makerbench.database import Base
from makerbench.utils import generate_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookmarkStatus(str, enum.Enum):
    """Moderation state. Only APPROVED bookmarks are publicly visible."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ImageSource(str, enum.Enum):
    """Where a bookmark's preview image came from."""

    OG = "og"
    SCREENSHOT = "screenshot"
    FALLBACK = "fallback"


class Bookmark(Base):
    """
    A submitted web tool.

    Lifecycle:
        1. Created by POST /api/bookmarks (status = 'pending')
        2. Moderated via PATCH /api/admin/bookmarks/{id}
           → 'approved' sets approved_at and makes it searchable
           → 'rejected' keeps it out of public listings

    Query Patterns:
        - Public listing / search: WHERE status = 'approved'
          ORDER BY created_at DESC, id DESC
          → idx_bookmarks_status + idx_bookmarks_created_at
        - Duplicate check on submit: WHERE url = :normalized_url
          → idx_bookmarks_url (unique, so a concurrent duplicate fails the
            insert with an IntegrityError)
    """

    __tablename__ = "bookmarks"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_id,
    )

    # Stored normalized; see makerbench.utils.normalize_url
    url: Mapped[str] = mapped_column(Text, nullable=False)

    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookmarkStatus.PENDING.value,
        server_default=text("'pending'"),
        comment="Moderation state: pending, approved, rejected",
    )

    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_source: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Preview image origin: og, screenshot, fallback",
    )

    submitter_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    submitter_github_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # `metadata` is reserved on declarative classes, hence the attribute name.
    # JSON text: extraction diagnostics (page title source, errors, timings).
    extra_metadata: Mapped[Optional[str]] = mapped_column(
        "metadata",
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_bookmarks_url", "url", unique=True),
        Index("idx_bookmarks_status", "status"),
        Index("idx_bookmarks_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Bookmark(id={self.id}, status='{self.status}', url='{self.url}')>"


class Tag(Base):
    """A normalized tag name shared across bookmarks."""

    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_id,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_tags_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name='{self.name}')>"


class BookmarkTag(Base):
    """Join row linking one bookmark to one tag."""

    __tablename__ = "bookmark_tags"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_id,
    )
    bookmark_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        nullable=False,
    )
    tag_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("bookmark_id", "tag_id", name="uq_bookmark_tags_bookmark_tag"),
        Index("idx_bookmark_tags_bookmark_id", "bookmark_id"),
        Index("idx_bookmark_tags_tag_id", "tag_id"),
    )

    def __repr__(self) -> str:
        return f"<BookmarkTag(bookmark_id={self.bookmark_id}, tag_id={self.tag_id})>"

"""
MakerBench Backend — Tag Service
==================================

What:  Tag listing, name search, popularity ranking and get-or-create.
Who:   GET /api/tags, GET /api/tags/popular and the submission workflow.

get_or_create_tags:
    Tag names are UNIQUE. Two submissions racing on a brand-new tag must not
    fail, so creation is an INSERT ... ON CONFLICT (name) DO NOTHING followed
    by a SELECT of every requested name. The dialect-specific insert comes
    from the bound engine (PostgreSQL in production, SQLite in tests).
"""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from makerbench.exceptions import DatabaseError
from makerbench.models.bookmark import Bookmark, BookmarkStatus, BookmarkTag, Tag
from makerbench.schemas.bookmark import PopularTag, TagItem, TagListData
from makerbench.services.search_service import build_pagination, like_pattern
from makerbench.utils import generate_id, normalize_tag_name, normalize_tag_name_safe

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class TagService:
    """Read and write access to the `tags` table."""

    async def list_tags(
        self,
        db: AsyncSession,
        query: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> TagListData:
        """
        Tags ordered by name, optionally filtered by a name substring.

        The filter text is normalized like a tag name first, so "Dev Tools"
        finds "dev-tools". A blank filter lists every tag.
        """
        predicates = []
        term = normalize_tag_name_safe(query)
        if term:
            predicates.append(Tag.name.like(like_pattern(term), escape="\\"))

        try:
            count_result = await db.execute(
                select(func.count()).select_from(Tag).where(*predicates)
            )
            total = count_result.scalar_one()
            result = await db.execute(
                select(Tag)
                .where(*predicates)
                .order_by(Tag.name)
                .limit(limit)
                .offset(offset)
            )
            tags = [TagItem(id=tag.id, name=tag.name) for tag in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Database error listing tags: %s", str(e))
            raise DatabaseError(
                message="Could not retrieve tags. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return TagListData(
            tags=tags,
            pagination=build_pagination(total, limit, offset, len(tags)),
        )

    async def search_tags(
        self,
        db: AsyncSession,
        term: str,
        limit: int = 50,
        offset: int = 0,
    ) -> TagListData:
        return await self.list_tags(db, query=term, limit=limit, offset=offset)

    async def get_popular_tags(self, db: AsyncSession, limit: int = 20) -> List[PopularTag]:
        """
        Tags ranked by the number of approved bookmarks using them.

        Query plan:
            SELECT tags.id, tags.name, count(bookmark_tags.id)
            FROM tags JOIN bookmark_tags JOIN bookmarks
            WHERE bookmarks.status = 'approved'
            GROUP BY tags.id, tags.name
            ORDER BY count DESC, name ASC
            LIMIT :limit

        Tags used only by pending or rejected bookmarks are not returned.
        """
        usage = func.count(BookmarkTag.id).label("usage")
        try:
            result = await db.execute(
                select(Tag.id, Tag.name, usage)
                .join(BookmarkTag, BookmarkTag.tag_id == Tag.id)
                .join(Bookmark, Bookmark.id == BookmarkTag.bookmark_id)
                .where(Bookmark.status == BookmarkStatus.APPROVED.value)
                .group_by(Tag.id, Tag.name)
                .order_by(usage.desc(), Tag.name)
                .limit(limit)
            )
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Database error ranking tags: %s", str(e))
            raise DatabaseError(
                message="Could not retrieve popular tags. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return [PopularTag(id=row.id, name=row.name, count=row.usage) for row in rows]

    async def get_or_create_tags(
        self,
        db: AsyncSession,
        names: Sequence[str],
    ) -> List[Tag]:
        """
        Returns one Tag per distinct normalized name, creating missing ones.

        Order follows the first occurrence of each name in `names`.

        Raises:
            TagValidationError: a name is empty after normalization (→ 400)
            DatabaseError: insert or lookup failed (→ 500)
        """
        normalized: List[str] = []
        for name in names:
            tag_name = normalize_tag_name(name)
            if tag_name not in normalized:
                normalized.append(tag_name)
        if not normalized:
            return []

        dialect = db.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise DatabaseError(
                message="Unsupported database backend",
                context={"dialect": dialect},
            )

        try:
            await db.execute(
                insert(Tag)
                .values([{"id": generate_id(), "name": name} for name in normalized])
                .on_conflict_do_nothing(index_elements=[Tag.name])
            )
            result = await db.execute(select(Tag).where(Tag.name.in_(normalized)))
            by_name: Dict[str, Tag] = {tag.name: tag for tag in result.scalars().all()}
        except SQLAlchemyError as e:
            logger.error("Database error creating tags %s: %s", normalized, str(e))
            raise DatabaseError(
                message="Could not save tags. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return [by_name[name] for name in normalized if name in by_name]


# ── Singleton Instance ────────────────────────────────────────────────────
tag_service = TagService()

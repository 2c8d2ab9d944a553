"""
MakerBench Backend — Bookmark Search Service
==============================================

What:  Filtered, paginated bookmark queries and the row-to-entity grouping
       that turns joined bookmark/tag rows into bookmarks with nested tags.
Who:   GET /api/bookmarks, GET /api/bookmarks/search and the moderation queue.

Query Plan (search with text and tags):
    ┌──────────────┐   ┌──────────────┐   ┌──────────────┐   ┌──────────────┐
    │ Tag prefilter│──▶│ COUNT(*) with│──▶│ Page of ids  │──▶│ LEFT JOIN    │
    │ (ANY-of)     │   │ predicates   │   │ LIMIT/OFFSET │   │ tags, group  │
    └──────────────┘   └──────────────┘   └──────────────┘   └──────────────┘

    1. Tag prefilter:  SELECT DISTINCT bookmark_id FROM bookmark_tags
                       JOIN tags ON ... WHERE tags.name IN (:names)
                       One row is fetched to test for a match; no match →
                       empty page, total 0, no further queries.
    2. Predicates:     status = :status
                       [AND id IN (<prefilter as a subquery>)]
                       [AND (lower(title) LIKE :q OR lower(description) LIKE :q)]
    3. Count:          SELECT count(*) FROM bookmarks WHERE <predicates>
    4. Page:           ids ordered by created_at DESC, id DESC with LIMIT/OFFSET,
                       then LEFT JOIN bookmark_tags/tags on that page only.
                       Pagination counts bookmarks, never joined rows.
    5. Grouping:       one entity per bookmark in first-seen order.

Parameter Parsing:
    Query parameters arrive as raw strings so malformed values produce our own
    400 envelope ("Invalid 'limit' parameter: ...") instead of a generic 422.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from makerbench.config import settings
from makerbench.exceptions import DatabaseError, NotFoundError, ValidationError
from makerbench.models.bookmark import Bookmark, BookmarkStatus, BookmarkTag, Tag
from makerbench.schemas.bookmark import (
    BookmarkDetail,
    BookmarkDetailListData,
    BookmarkItem,
    BookmarkListData,
    Pagination,
    TagItem,
)
from makerbench.utils import normalize_tag_name_safe

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"^[+-]?\d+$")


# ══════════════════════════════════════════════════════════════════════════
# Query Parameter Parsing
# ══════════════════════════════════════════════════════════════════════════

def _parse_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    if not _INTEGER_RE.match(value):
        raise ValueError(value)
    return int(value)


def parse_limit(raw: Optional[str]) -> int:
    """
    Page size from the `limit` query parameter.

    Missing → settings.default_page_size. Values above settings.max_page_size
    are capped, not rejected.

    Raises:
        ValidationError: not an integer, or less than 1.
    """
    try:
        limit = _parse_int(raw)
    except ValueError:
        limit = 0
    else:
        if limit is None:
            return min(settings.default_page_size, settings.max_page_size)
    if limit < 1:
        raise ValidationError(
            message="Invalid 'limit' parameter: must be a positive integer",
            field="limit",
            context={"value": raw},
        )
    return min(limit, settings.max_page_size)


def parse_offset(raw: Optional[str]) -> int:
    """
    Row offset from the `offset` query parameter; missing → 0.

    Raises:
        ValidationError: not an integer, or negative.
    """
    try:
        offset = _parse_int(raw)
    except ValueError:
        offset = -1
    else:
        if offset is None:
            return 0
    if offset < 0:
        raise ValidationError(
            message="Invalid 'offset' parameter: must be a non-negative integer",
            field="offset",
            context={"value": raw},
        )
    return offset


def parse_query(raw: Optional[str]) -> Optional[str]:
    """Trimmed search text, or None when blank."""
    if raw is None:
        return None
    query = raw.strip()
    if not query:
        return None
    if len(query) > settings.max_query_length:
        raise ValidationError(
            message=(
                f"Invalid 'q' parameter: must be {settings.max_query_length} "
                "characters or less"
            ),
            field="q",
            context={"length": len(query)},
        )
    return query


def parse_tag_filter(raw: Optional[str]) -> List[str]:
    """
    Tag names from the comma-separated `tags` query parameter.

    "React, dev tools,,react" → ["react", "dev-tools"]

    Raises:
        ValidationError: more than settings.max_tag_filters distinct names.
    """
    if not raw:
        return []
    names: List[str] = []
    for part in raw.split(","):
        name = normalize_tag_name_safe(part)
        if name and name not in names:
            names.append(name)
    if len(names) > settings.max_tag_filters:
        raise ValidationError(
            message=(
                f"Invalid 'tags' parameter: at most {settings.max_tag_filters} "
                "tags can be combined"
            ),
            field="tags",
            context={"count": len(names)},
        )
    return names


# ══════════════════════════════════════════════════════════════════════════
# Row Grouping
# ══════════════════════════════════════════════════════════════════════════

def group_bookmark_rows(
    rows: Iterable[Tuple[Any, Optional[str], Optional[str]]],
    model: Type[BookmarkItem] = BookmarkItem,
) -> List[BookmarkItem]:
    """
    Collapses (bookmark, tag_id, tag_name) rows into one entity per bookmark.

    - Entities keep the order in which their first row appears.
    - Rows with a NULL tag (untagged bookmark via LEFT JOIN) add no tag.
    - Repeated tag rows for the same bookmark are collapsed.
    - Each entity's tags are sorted by name.
    """
    grouped: Dict[str, Tuple[Any, Dict[str, str]]] = {}
    for bookmark, tag_id, tag_name in rows:
        entry = grouped.get(bookmark.id)
        if entry is None:
            entry = grouped[bookmark.id] = (bookmark, {})
        if tag_id is not None and tag_name is not None:
            entry[1].setdefault(tag_id, tag_name)

    items: List[BookmarkItem] = []
    for bookmark, tags in grouped.values():
        tag_items = [
            TagItem(id=tag_id, name=name)
            for tag_id, name in sorted(tags.items(), key=lambda kv: (kv[1], kv[0]))
        ]
        item = model.model_validate(bookmark, from_attributes=True)
        items.append(item.model_copy(update={"tags": tag_items}))
    return items


def like_pattern(term: str) -> str:
    """Lowercased `%term%` pattern with LIKE wildcards in `term` escaped by backslash."""
    escaped = (
        term.lower()
        .replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    return f"%{escaped}%"


def build_pagination(total: int, limit: int, offset: int, page_size: int) -> Pagination:
    return Pagination(
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + page_size < total,
    )


# ══════════════════════════════════════════════════════════════════════════
# Search Service
# ══════════════════════════════════════════════════════════════════════════

class SearchService:
    """
    Read side of the bookmark store.

    Error Handling:
        SQLAlchemy failures are logged and re-raised as DatabaseError (500)
        with a generic message. ValidationError and NotFoundError propagate
        unchanged.
    """

    async def search_bookmarks(
        self,
        db: AsyncSession,
        query: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        limit: int = 20,
        offset: int = 0,
        status: BookmarkStatus = BookmarkStatus.APPROVED,
    ) -> BookmarkListData:
        """
        Search bookmarks by free text and tag names (ANY-of).

        Args:
            db:      Async database session
            query:   Case-insensitive substring matched against title OR
                     description; None or blank disables the text filter
            tags:    Normalized tag names; empty disables the tag filter
            limit:   Page size (already validated and capped)
            offset:  Bookmarks to skip
            status:  Moderation state to search within

        Returns:
            BookmarkListData with the page and its pagination bookkeeping.
        """
        try:
            bookmarks, total = await self._search(
                db, query, tags, limit, offset, status, BookmarkItem
            )
        except SQLAlchemyError as e:
            logger.error("Database error searching bookmarks: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not search bookmarks. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        logger.debug(
            "Search q=%r tags=%s limit=%d offset=%d → %d of %d",
            query, list(tags or []), limit, offset, len(bookmarks), total,
        )
        return BookmarkListData(
            bookmarks=bookmarks,
            pagination=build_pagination(total, limit, offset, len(bookmarks)),
        )

    async def list_bookmarks(
        self,
        db: AsyncSession,
        limit: int = 20,
        offset: int = 0,
    ) -> BookmarkListData:
        """Approved bookmarks, newest first, with their tags."""
        return await self.search_bookmarks(db, limit=limit, offset=offset)

    async def list_bookmarks_by_status(
        self,
        db: AsyncSession,
        status: BookmarkStatus,
        limit: int = 20,
        offset: int = 0,
    ) -> BookmarkDetailListData:
        """Moderation queue: every bookmark in `status`, with full details."""
        try:
            bookmarks, total = await self._search(
                db, None, None, limit, offset, status, BookmarkDetail
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing %s bookmarks: %s", status.value, str(e))
            raise DatabaseError(
                message="Could not retrieve bookmarks. Please try again.",
                context={"status": status.value, "error_type": type(e).__name__},
            ) from e

        return BookmarkDetailListData(
            bookmarks=bookmarks,
            pagination=build_pagination(total, limit, offset, len(bookmarks)),
        )

    async def get_bookmark(self, db: AsyncSession, bookmark_id: str) -> BookmarkDetail:
        """
        Single bookmark with tags, regardless of status.

        Raises:
            NotFoundError: No bookmark with this ID (→ 404)
            DatabaseError: Query execution failed (→ 500)
        """
        try:
            result = await db.execute(
                select(Bookmark, Tag.id, Tag.name)
                .outerjoin(BookmarkTag, BookmarkTag.bookmark_id == Bookmark.id)
                .outerjoin(Tag, Tag.id == BookmarkTag.tag_id)
                .where(Bookmark.id == bookmark_id)
            )
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Database error fetching bookmark %s: %s", bookmark_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the bookmark. Please try again.",
                context={"bookmark_id": bookmark_id},
            ) from e

        if not rows:
            raise NotFoundError(resource="bookmark", resource_id=bookmark_id)
        return group_bookmark_rows(rows, BookmarkDetail)[0]

    # ── Internals ─────────────────────────────────────────────────────────

    async def _search(
        self,
        db: AsyncSession,
        query: Optional[str],
        tags: Optional[Sequence[str]],
        limit: int,
        offset: int,
        status: BookmarkStatus,
        model: Type[BookmarkItem],
    ) -> Tuple[List[BookmarkItem], int]:
        predicates = [Bookmark.status == status.value]

        if tags:
            tagged = (
                select(BookmarkTag.bookmark_id)
                .join(Tag, Tag.id == BookmarkTag.tag_id)
                .where(Tag.name.in_(list(tags)))
                .distinct()
            )
            first_match = await db.execute(tagged.limit(1))
            if first_match.first() is None:
                return [], 0
            predicates.append(Bookmark.id.in_(tagged))

        if query:
            pattern = like_pattern(query)
            predicates.append(
                or_(
                    func.lower(Bookmark.title).like(pattern, escape="\\"),
                    func.lower(Bookmark.description).like(pattern, escape="\\"),
                )
            )

        count_result = await db.execute(
            select(func.count()).select_from(Bookmark).where(*predicates)
        )
        total = count_result.scalar_one()
        if total == 0 or offset >= total:
            return [], total

        page = (
            select(Bookmark.id)
            .where(*predicates)
            .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
            .limit(limit)
            .offset(offset)
            .subquery("page")
        )
        result = await db.execute(
            select(Bookmark, Tag.id, Tag.name)
            .join(page, page.c.id == Bookmark.id)
            .outerjoin(BookmarkTag, BookmarkTag.bookmark_id == Bookmark.id)
            .outerjoin(Tag, Tag.id == BookmarkTag.tag_id)
            .order_by(Bookmark.created_at.desc(), Bookmark.id.desc(), Tag.name)
        )
        return group_bookmark_rows(result.all(), model), total


# ── Singleton Instance ────────────────────────────────────────────────────
search_service = SearchService()

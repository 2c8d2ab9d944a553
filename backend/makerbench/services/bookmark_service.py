"""
MakerBench Backend — Bookmark Service (Submission & Moderation)
=================================================================

What:  Orchestrates the submit workflow and moderation status changes.
How:   Composes MetadataService, ScreenshotService, ImageStorageService,
       TagService and database operations.
Who:   Called by POST /api/bookmarks and PATCH /api/admin/bookmarks/{id}.

Submission Flow (POST /api/bookmarks):
    ┌──────────┐   ┌───────────┐   ┌──────────────┐   ┌─────────────┐   ┌─────────┐
    │ Normalize│──▶│ Duplicate │──▶│ Page metadata│──▶│ Image: og → │──▶│ Insert  │
    │ URL/tags │   │ check     │   │ (tolerated)  │   │ screenshot →│   │ bookmark│
    └──────────┘   └───────────┘   └──────────────┘   │ fallback    │   │ + tags  │
                                                      └─────────────┘   └─────────┘

    On failure:
    - Invalid URL or tag             → ValidationError (400), nothing stored
    - Same normalized URL exists     → ConflictError (409), nothing fetched
    - Metadata / screenshot failures → recorded in the metadata column, the
                                       submission still succeeds
    - Database failure               → stored screenshot removed, DatabaseError (500)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from makerbench.exceptions import (
    ConflictError,
    DatabaseError,
    FileStorageError,
    InvalidUrlError,
    MakerBenchError,
    NotFoundError,
    ScreenshotServiceError,
    ValidationError,
)
from makerbench.models.bookmark import (
    Bookmark,
    BookmarkStatus,
    BookmarkTag,
    ImageSource,
)
from makerbench.schemas.bookmark import (
    BookmarkDetail,
    BookmarkSubmitRequest,
    SubmissionData,
)
from makerbench.services.image_storage import image_storage
from makerbench.services.metadata_service import MetadataResult, metadata_service
from makerbench.services.screenshot_service import screenshot_service
from makerbench.services.search_service import search_service
from makerbench.services.tag_service import tag_service
from makerbench.utils import (
    generate_id,
    normalize_tag_name,
    parse_and_normalize_url,
    stringify_metadata_safe,
)

logger = logging.getLogger(__name__)

SUBMITTED_MESSAGE = "Bookmark submitted for review"


class BookmarkService:
    """
    Write side of the bookmark store.

    Stateless; every call receives its database session.
    """

    async def submit_bookmark(
        self,
        db: AsyncSession,
        request: BookmarkSubmitRequest,
    ) -> SubmissionData:
        """
        Complete workflow: normalize → dedupe → metadata → image → persist.

        Returns:
            SubmissionData with the new bookmark ID and a confirmation message.

        Raises:
            InvalidUrlError / TagValidationError: bad input (→ 400)
            ConflictError: normalized URL already submitted (→ 409)
            DatabaseError: persistence failed (→ 500)
        """
        url = parse_and_normalize_url(request.url)
        if url is None:
            raise InvalidUrlError(request.url)

        tag_names: List[str] = []
        for name in request.tags:
            tag_name = normalize_tag_name(name)
            if tag_name not in tag_names:
                tag_names.append(tag_name)

        await self._ensure_not_submitted(db, url)

        bookmark_id = generate_id()
        diagnostics: Dict[str, Any] = {
            "submittedUrl": request.url,
            "extractedAt": datetime.now(timezone.utc).isoformat(),
        }

        metadata = await metadata_service.extract(url)
        if metadata.error:
            diagnostics["metadataError"] = metadata.error

        image_url, image_source, screenshot_path = await self._resolve_image(
            bookmark_id, url, metadata, diagnostics
        )

        try:
            bookmark = Bookmark(
                id=bookmark_id,
                url=url,
                title=metadata.title,
                description=metadata.description,
                status=BookmarkStatus.PENDING.value,
                image_url=image_url,
                image_source=image_source.value,
                submitter_name=request.submitter_name,
                submitter_github_url=request.submitter_github_url,
                extra_metadata=stringify_metadata_safe(diagnostics),
            )
            db.add(bookmark)
            try:
                await db.flush()
            except IntegrityError as e:
                # Another submission of the same URL committed after our check.
                logger.info("Duplicate submission for %s lost the insert race", url)
                raise ConflictError(context={"url": url}) from e

            tags = await tag_service.get_or_create_tags(db, tag_names)
            for tag in tags:
                db.add(BookmarkTag(bookmark_id=bookmark_id, tag_id=tag.id))
            await db.flush()
        except (SQLAlchemyError, MakerBenchError) as e:
            if screenshot_path:
                await image_storage.cleanup_file(screenshot_path)
            if isinstance(e, MakerBenchError):
                raise
            logger.error("Database error saving bookmark %s: %s", bookmark_id, str(e), exc_info=True)
            raise DatabaseError(
                message="An error occurred while saving your submission. Please try again.",
                context={"bookmark_id": bookmark_id, "error_type": type(e).__name__},
            ) from e

        logger.info(
            "Bookmark %s submitted (image_source=%s, tags=%s)",
            bookmark_id,
            image_source.value,
            tag_names,
        )
        return SubmissionData(bookmark_id=bookmark_id, message=SUBMITTED_MESSAGE)

    async def update_bookmark_status(
        self,
        db: AsyncSession,
        bookmark_id: str,
        status: BookmarkStatus,
    ) -> BookmarkDetail:
        """
        Moderate a bookmark.

        Always touches updated_at; approving also sets approved_at.

        Raises:
            NotFoundError: unknown bookmark ID (→ 404)
            DatabaseError: update failed (→ 500)
        """
        try:
            result = await db.execute(select(Bookmark).where(Bookmark.id == bookmark_id))
            bookmark = result.scalar_one_or_none()
            if bookmark is None:
                raise NotFoundError(resource="bookmark", resource_id=bookmark_id)

            now = datetime.now(timezone.utc)
            bookmark.status = status.value
            bookmark.updated_at = now
            if status == BookmarkStatus.APPROVED:
                bookmark.approved_at = now
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating bookmark %s: %s", bookmark_id, str(e))
            raise DatabaseError(
                message="Could not update the bookmark. Please try again.",
                context={"bookmark_id": bookmark_id},
            ) from e

        logger.info("Bookmark %s moderated → %s", bookmark_id, status.value)
        return await search_service.get_bookmark(db, bookmark_id)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _ensure_not_submitted(self, db: AsyncSession, url: str) -> None:
        try:
            result = await db.execute(select(Bookmark.id).where(Bookmark.url == url).limit(1))
            existing = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error checking duplicate URL: %s", str(e))
            raise DatabaseError(
                message="Could not verify the submission. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        if existing is not None:
            logger.info("Duplicate submission for %s (existing bookmark %s)", url, existing)
            raise ConflictError(context={"url": url})

    async def _resolve_image(
        self,
        bookmark_id: str,
        url: str,
        metadata: MetadataResult,
        diagnostics: Dict[str, Any],
    ) -> Tuple[Optional[str], ImageSource, Optional[str]]:
        """
        Picks the preview image.

        Returns:
            (image_url, image_source, stored_screenshot_path)
        """
        if metadata.og_image:
            return metadata.og_image, ImageSource.OG, None

        try:
            content = await screenshot_service.capture(url)
            path, public_url = await image_storage.store_screenshot(bookmark_id, content)
        except (ScreenshotServiceError, ValidationError, FileStorageError) as e:
            logger.warning("No screenshot for %s: %s", url, e.message)
            diagnostics["screenshotError"] = e.message
            return None, ImageSource.FALLBACK, None

        return public_url, ImageSource.SCREENSHOT, path


# ── Singleton Instance ────────────────────────────────────────────────────
bookmark_service = BookmarkService()

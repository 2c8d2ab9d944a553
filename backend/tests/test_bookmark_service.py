"""
MakerBench Backend — Bookmark Service Unit Tests
==================================================

What:  Tests for the submission workflow and moderation status changes.
How:   Metadata, screenshot and storage services are patched; persistence
       runs against the in-memory database (or a mock session for failures).

What we test:
    ✅ Submission stores a pending bookmark with normalized URL and tags
    ✅ Image choice: OG image → screenshot → fallback
    ✅ Metadata and screenshot failures do not fail the submission
    ✅ Duplicate normalized URL raises ConflictError before any fetch
    ✅ A duplicate that reaches the insert still maps to ConflictError
    ✅ Database failure removes the stored screenshot
    ✅ Approving sets approved_at; unknown IDs raise NotFoundError
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from makerbench.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ScreenshotServiceError,
)
from makerbench.models.bookmark import Bookmark, BookmarkStatus
from makerbench.schemas.bookmark import BookmarkSubmitRequest
from makerbench.services.bookmark_service import SUBMITTED_MESSAGE, BookmarkService
from makerbench.services.metadata_service import MetadataResult
from makerbench.services.search_service import search_service
from makerbench.utils import parse_metadata


def _request(url="https://Tool.example.com/app/", tags=None, **kwargs):
    return BookmarkSubmitRequest(url=url, tags=tags or ["Design", "ui kit"], **kwargs)


async def _stored(db_session, bookmark_id):
    result = await db_session.execute(select(Bookmark).where(Bookmark.id == bookmark_id))
    return result.scalar_one()


class TestSubmitBookmark:

    def setup_method(self):
        self.service = BookmarkService()

    @pytest.mark.asyncio
    async def test_submit_with_og_image(self, db_session):
        """OG image wins; no screenshot is requested."""
        with patch('makerbench.services.bookmark_service.metadata_service') as mock_meta, \
             patch('makerbench.services.bookmark_service.screenshot_service') as mock_shot:
            mock_meta.extract = AsyncMock(return_value=MetadataResult(
                title="Tool",
                description="A handy tool",
                og_image="https://tool.example.com/og.png",
            ))
            mock_shot.capture = AsyncMock()

            result = await self.service.submit_bookmark(
                db_session,
                _request(submitter_name="Ada", submitter_github_url="https://github.com/ada"),
            )

            assert result.message == SUBMITTED_MESSAGE
            mock_meta.extract.assert_awaited_once_with("https://tool.example.com/app")
            mock_shot.capture.assert_not_awaited()

        bookmark = await _stored(db_session, result.bookmark_id)
        assert bookmark.url == "https://tool.example.com/app"
        assert bookmark.status == BookmarkStatus.PENDING.value
        assert bookmark.title == "Tool"
        assert bookmark.image_url == "https://tool.example.com/og.png"
        assert bookmark.image_source == "og"
        assert bookmark.submitter_name == "Ada"

        detail = await search_service.get_bookmark(db_session, result.bookmark_id)
        assert [tag.name for tag in detail.tags] == ["design", "ui-kit"]

    @pytest.mark.asyncio
    async def test_submit_with_screenshot(self, db_session, png_bytes):
        with patch('makerbench.services.bookmark_service.metadata_service') as mock_meta, \
             patch('makerbench.services.bookmark_service.screenshot_service') as mock_shot, \
             patch('makerbench.services.bookmark_service.image_storage') as mock_storage:
            mock_meta.extract = AsyncMock(return_value=MetadataResult(title="Tool"))
            mock_shot.capture = AsyncMock(return_value=png_bytes)
            mock_storage.store_screenshot = AsyncMock(return_value=(
                "/storage/screenshots/2024/01/x.png",
                "/api/files/screenshots/2024/01/x.png",
            ))

            result = await self.service.submit_bookmark(db_session, _request())

            mock_shot.capture.assert_awaited_once_with("https://tool.example.com/app")
            mock_storage.store_screenshot.assert_awaited_once_with(result.bookmark_id, png_bytes)

        bookmark = await _stored(db_session, result.bookmark_id)
        assert bookmark.image_source == "screenshot"
        assert bookmark.image_url == "/api/files/screenshots/2024/01/x.png"

    @pytest.mark.asyncio
    async def test_screenshot_failure_falls_back(self, db_session):
        with patch('makerbench.services.bookmark_service.metadata_service') as mock_meta, \
             patch('makerbench.services.bookmark_service.screenshot_service') as mock_shot:
            mock_meta.extract = AsyncMock(return_value=MetadataResult(error="HTTP 500: Internal Server Error"))
            mock_shot.capture = AsyncMock(
                side_effect=ScreenshotServiceError(message="BROWSERLESS_API_KEY not configured")
            )

            result = await self.service.submit_bookmark(db_session, _request())

        bookmark = await _stored(db_session, result.bookmark_id)
        assert bookmark.image_source == "fallback"
        assert bookmark.image_url is None
        assert bookmark.title is None

        diagnostics = parse_metadata(bookmark.extra_metadata)
        assert diagnostics["screenshotError"] == "BROWSERLESS_API_KEY not configured"
        assert diagnostics["metadataError"] == "HTTP 500: Internal Server Error"
        assert diagnostics["submittedUrl"] == "https://Tool.example.com/app/"

    @pytest.mark.asyncio
    async def test_duplicate_url_rejected_before_fetch(self, db_session, seeded_bookmarks):
        with patch('makerbench.services.bookmark_service.metadata_service') as mock_meta:
            mock_meta.extract = AsyncMock()

            with pytest.raises(ConflictError):
                await self.service.submit_bookmark(
                    db_session, _request(url="HTTPS://Coolors.co:443/#palettes")
                )

            mock_meta.extract.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_tags_collapsed(self, db_session):
        with patch('makerbench.services.bookmark_service.metadata_service') as mock_meta, \
             patch('makerbench.services.bookmark_service.screenshot_service') as mock_shot:
            mock_meta.extract = AsyncMock(return_value=MetadataResult(og_image="https://x.test/i.png"))
            mock_shot.capture = AsyncMock()

            result = await self.service.submit_bookmark(
                db_session, _request(tags=["React", "react ", "Dev Tools"])
            )

        detail = await search_service.get_bookmark(db_session, result.bookmark_id)
        assert [tag.name for tag in detail.tags] == ["dev-tools", "react"]

    @pytest.mark.asyncio
    async def test_database_failure_cleans_up_screenshot(self, mock_db_session, png_bytes):
        no_duplicate = MagicMock()
        no_duplicate.scalar_one_or_none.return_value = None
        mock_db_session.execute = AsyncMock(return_value=no_duplicate)
        mock_db_session.flush = AsyncMock(side_effect=SQLAlchemyError("connection lost"))

        with patch('makerbench.services.bookmark_service.metadata_service') as mock_meta, \
             patch('makerbench.services.bookmark_service.screenshot_service') as mock_shot, \
             patch('makerbench.services.bookmark_service.image_storage') as mock_storage:
            mock_meta.extract = AsyncMock(return_value=MetadataResult())
            mock_shot.capture = AsyncMock(return_value=png_bytes)
            mock_storage.store_screenshot = AsyncMock(
                return_value=("/storage/x.png", "/api/files/x.png")
            )
            mock_storage.cleanup_file = AsyncMock()

            with pytest.raises(DatabaseError):
                await self.service.submit_bookmark(mock_db_session, _request())

            mock_storage.cleanup_file.assert_awaited_once_with("/storage/x.png")

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_insert_raises_conflict(self, db_session, seeded_bookmarks):
        """A duplicate that slips past the pre-check is stopped by the unique url index."""
        with patch.object(self.service, "_ensure_not_submitted", AsyncMock()), \
             patch('makerbench.services.bookmark_service.metadata_service') as mock_meta:
            mock_meta.extract = AsyncMock(return_value=MetadataResult(
                title="Coolors",
                og_image="https://coolors.co/og.png",
            ))

            with pytest.raises(ConflictError) as exc_info:
                await self.service.submit_bookmark(
                    db_session, _request(url="https://Coolors.co", tags=["color"])
                )

        assert exc_info.value.context == {"url": "https://coolors.co/"}

    @pytest.mark.asyncio
    async def test_integrity_error_cleans_up_screenshot(self, mock_db_session, png_bytes):
        no_duplicate = MagicMock()
        no_duplicate.scalar_one_or_none.return_value = None
        mock_db_session.execute = AsyncMock(return_value=no_duplicate)
        mock_db_session.flush = AsyncMock(side_effect=IntegrityError(
            "INSERT INTO bookmarks", {}, Exception("UNIQUE constraint failed: bookmarks.url")
        ))

        with patch('makerbench.services.bookmark_service.metadata_service') as mock_meta, \
             patch('makerbench.services.bookmark_service.screenshot_service') as mock_shot, \
             patch('makerbench.services.bookmark_service.image_storage') as mock_storage:
            mock_meta.extract = AsyncMock(return_value=MetadataResult())
            mock_shot.capture = AsyncMock(return_value=png_bytes)
            mock_storage.store_screenshot = AsyncMock(
                return_value=("/storage/x.png", "/api/files/x.png")
            )
            mock_storage.cleanup_file = AsyncMock()

            with pytest.raises(ConflictError):
                await self.service.submit_bookmark(mock_db_session, _request())

            mock_storage.cleanup_file.assert_awaited_once_with("/storage/x.png")


class TestUpdateBookmarkStatus:

    def setup_method(self):
        self.service = BookmarkService()

    @pytest.mark.asyncio
    async def test_approve_sets_approved_at(self, db_session, seeded_bookmarks):
        pending = seeded_bookmarks["pending"]

        detail = await self.service.update_bookmark_status(
            db_session, pending.id, BookmarkStatus.APPROVED
        )

        assert detail.status == BookmarkStatus.APPROVED
        assert detail.approved_at is not None

        data = await search_service.search_bookmarks(db_session, query="pending color")
        assert [b.id for b in data.bookmarks] == [pending.id]

    @pytest.mark.asyncio
    async def test_reject_leaves_approved_at_unset(self, db_session, seeded_bookmarks):
        pending = seeded_bookmarks["pending"]

        detail = await self.service.update_bookmark_status(
            db_session, pending.id, BookmarkStatus.REJECTED
        )

        assert detail.status == BookmarkStatus.REJECTED
        assert detail.approved_at is None

    @pytest.mark.asyncio
    async def test_unknown_bookmark(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.update_bookmark_status(
                db_session, "missing-id", BookmarkStatus.APPROVED
            )

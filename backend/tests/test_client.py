"""
MakerBench Backend — API Client Tests
=======================================

What:  Tests for BookmarkClient response handling and error mapping.
How:   httpx.MockTransport for canned responses; ASGITransport for one
       round trip through the real application.

What we test:
    ✅ Success envelopes decoded into schema objects
    ✅ Error envelopes raised as BookmarkApiError with status and details
    ✅ Malformed success bodies and non-envelope errors mapped to generic messages
    ✅ Network failures reported with status 0
"""

import httpx
import pytest

from makerbench.client import BookmarkApiError, BookmarkClient
from makerbench.schemas.bookmark import BookmarkSubmitRequest

PAGE_BODY = {
    "success": True,
    "data": {
        "bookmarks": [
            {
                "id": "b1",
                "url": "https://coolors.co/",
                "title": "Coolors",
                "description": None,
                "imageUrl": "https://coolors.co/og.png",
                "createdAt": "2024-01-06T00:00:00Z",
                "tags": [{"id": "t1", "name": "color"}],
            }
        ],
        "pagination": {"total": 3, "limit": 1, "offset": 0, "hasMore": True},
    },
}


def _client(handler):
    return BookmarkClient("http://api.test", transport=httpx.MockTransport(handler))


class TestBookmarkClient:

    @pytest.mark.asyncio
    async def test_search_sends_params_and_decodes(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=PAGE_BODY)

        async with _client(handler) as client:
            page = await client.search_bookmarks(q="color", tags=["design", "css"], limit=1)

        assert seen["path"] == "/api/bookmarks/search"
        assert seen["params"] == {"q": "color", "tags": "design,css", "limit": "1"}
        assert page.bookmarks[0].image_url == "https://coolors.co/og.png"
        assert page.bookmarks[0].tags[0].name == "color"
        assert page.pagination.has_more is True

    @pytest.mark.asyncio
    async def test_submit_sends_camel_case_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.read()
            return httpx.Response(
                201,
                json={
                    "success": True,
                    "data": {"bookmarkId": "b9", "message": "Bookmark submitted for review"},
                },
            )

        request = BookmarkSubmitRequest(
            url="https://example.com",
            tags=["tools"],
            submitter_name="Ada",
        )
        async with _client(handler) as client:
            result = await client.submit_bookmark(request)

        assert result.bookmark_id == "b9"
        assert b'"submitterName":"Ada"' in seen["body"].replace(b" ", b"")
        assert b"submitterGithubUrl" not in seen["body"]

    @pytest.mark.asyncio
    async def test_error_envelope_raised(self):
        body = {
            "success": False,
            "error": "Invalid 'limit' parameter: must be a positive integer",
            "details": {"field": "limit", "value": "abc"},
            "request_id": "abc123",
        }
        async with _client(lambda request: httpx.Response(400, json=body)) as client:
            with pytest.raises(BookmarkApiError) as exc_info:
                await client.get_bookmarks(limit=0)

        assert exc_info.value.status == 400
        assert exc_info.value.message == body["error"]
        assert exc_info.value.details == {"field": "limit", "value": "abc"}

    @pytest.mark.asyncio
    async def test_conflict_envelope(self):
        body = {"success": False, "error": "This URL has already been submitted"}
        async with _client(lambda request: httpx.Response(409, json=body)) as client:
            with pytest.raises(BookmarkApiError) as exc_info:
                await client.submit_bookmark(
                    BookmarkSubmitRequest(url="https://coolors.co", tags=["color"])
                )

        assert exc_info.value.status == 409
        assert exc_info.value.message == "This URL has already been submitted"

    @pytest.mark.asyncio
    async def test_invalid_success_body(self):
        async with _client(lambda request: httpx.Response(200, json={"success": True})) as client:
            with pytest.raises(BookmarkApiError) as exc_info:
                await client.get_bookmarks()

        assert exc_info.value.status == 500
        assert exc_info.value.message == "Invalid response from server"

    @pytest.mark.asyncio
    async def test_non_envelope_error(self):
        async with _client(lambda request: httpx.Response(502, text="Bad Gateway")) as client:
            with pytest.raises(BookmarkApiError) as exc_info:
                await client.get_popular_tags()

        assert exc_info.value.status == 502
        assert exc_info.value.message == "An unexpected error occurred"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(BookmarkApiError) as exc_info:
                await client.get_bookmarks()

        assert exc_info.value.status == 0
        assert exc_info.value.message.startswith("Network error:")


class TestBookmarkClientAgainstApp:

    @pytest.mark.asyncio
    async def test_round_trip(self, api_app, seeded_bookmarks):
        client = BookmarkClient("http://test", transport=httpx.ASGITransport(app=api_app))
        async with client:
            page = await client.search_bookmarks(tags=["design"], limit=2)
            popular = await client.get_popular_tags(limit=1)

        assert [b.title for b in page.bookmarks] == ["Coolors", "Figma"]
        assert page.pagination.total == 3
        assert page.pagination.has_more is True
        assert [(tag.name, tag.count) for tag in popular] == [("design", 3)]

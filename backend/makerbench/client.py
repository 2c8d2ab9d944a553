"""
MakerBench Backend — Async API Client
=======================================

What:  Typed async wrapper around the public MakerBench HTTP API.
How:   httpx.AsyncClient for transport; every response body is validated
       against the same Pydantic schemas the server renders.
Who:   Scripts, integration tests and other Python services.

Error mapping:
    error envelope ({"success": false, ...})  → BookmarkApiError(error, status, details)
    2xx body failing schema validation        → BookmarkApiError("Invalid response from server", 500)
    non-2xx body that is not an envelope      → BookmarkApiError("An unexpected error occurred", status)
    transport failure                         → BookmarkApiError("Network error: ...", 0)

Example:
    async with BookmarkClient("https://makerbench.example") as client:
        page = await client.search_bookmarks(q="color", tags=["design"], limit=20)
        while page.pagination.has_more:
            page = await client.search_bookmarks(
                q="color", tags=["design"], limit=20,
                offset=page.pagination.offset + len(page.bookmarks),
            )
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from makerbench.schemas.bookmark import (
    BookmarkListData,
    BookmarkSubmitRequest,
    ErrorResponse,
    PopularTag,
    PopularTagsData,
    SubmissionData,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

DataT = TypeVar("DataT", bound=BaseModel)

INVALID_RESPONSE_MESSAGE = "Invalid response from server"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class BookmarkApiError(Exception):
    """
    Raised for any unsuccessful API call.

    Attributes:
        message:  Server-provided error text or one of the generic messages
        status:   HTTP status code (0 when no response was received)
        details:  Server-provided `details` object, if any
    """

    def __init__(
        self,
        message: str,
        status: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details

    def __repr__(self) -> str:
        return f"BookmarkApiError(status={self.status}, message={self.message!r})"


class BookmarkClient:
    """
    Args:
        base_url:   API origin, e.g. "https://makerbench.example"
        timeout:    Request timeout in seconds
        transport:  Optional httpx transport (MockTransport / ASGITransport in tests)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "BookmarkClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Public API ────────────────────────────────────────────────────────

    async def get_bookmarks(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> BookmarkListData:
        params = _params(limit=limit, offset=offset)
        return await self._request("GET", "/api/bookmarks", BookmarkListData, params=params)

    async def search_bookmarks(
        self,
        q: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> BookmarkListData:
        params = _params(
            q=q or None,
            tags=",".join(tags) if tags else None,
            limit=limit,
            offset=offset,
        )
        return await self._request(
            "GET", "/api/bookmarks/search", BookmarkListData, params=params
        )

    async def submit_bookmark(self, request: BookmarkSubmitRequest) -> SubmissionData:
        body = request.model_dump(by_alias=True, exclude_none=True)
        return await self._request("POST", "/api/bookmarks", SubmissionData, json=body)

    async def get_popular_tags(self, limit: Optional[int] = None) -> List[PopularTag]:
        data = await self._request(
            "GET", "/api/tags/popular", PopularTagsData, params=_params(limit=limit)
        )
        return data.tags

    # ── Internals ─────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        data_model: Type[DataT],
        **kwargs: Any,
    ) -> DataT:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, str(e))
            raise BookmarkApiError(f"Network error: {e}", 0) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_success:
            try:
                envelope = SuccessResponse[data_model].model_validate(payload)
            except PydanticValidationError as e:
                logger.warning("%s %s returned an unexpected body: %s", method, path, e)
                raise BookmarkApiError(INVALID_RESPONSE_MESSAGE, 500) from e
            return envelope.data

        try:
            error = ErrorResponse.model_validate(payload)
        except PydanticValidationError:
            raise BookmarkApiError(UNEXPECTED_ERROR_MESSAGE, response.status_code) from None
        raise BookmarkApiError(error.error, response.status_code, error.details)


def _params(**values: Any) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}

"""
MakerBench Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract between clients and backend.
How:   FastAPI uses these models to validate request bodies, serialize
       responses and generate the OpenAPI document. The same models validate
       responses on the client side (makerbench.client).

Wire Format:
    JSON keys are camelCase (`imageUrl`, `hasMore`, `bookmarkId`); Python
    attributes stay snake_case. `populate_by_name` lets both spellings in.

    Success:  {"success": true, "data": {...}}
    Failure:  {"success": false, "error": "...", "details": {...}, "request_id": "..."}
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from makerbench.models.bookmark import BookmarkStatus
from makerbench.utils import parse_and_normalize_url

T = TypeVar("T")

MAX_URL_LENGTH = 2000
MAX_TAGS = 10
MAX_TAG_LENGTH = 50
MAX_SUBMITTER_NAME_LENGTH = 100


class CamelModel(BaseModel):
    """Base model serializing to camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Envelopes
# ══════════════════════════════════════════════════════════════════════════


class SuccessResponse(CamelModel, Generic[T]):
    """`{"success": true, "data": ...}` wrapper used by every JSON endpoint."""

    success: Literal[True] = True
    data: T


class ErrorResponse(BaseModel):
    """
    What:  Standard error envelope returned by the global exception handlers.

    `details` is present for validation failures: either the offending query
    parameter (`{"field": "limit", "value": "abc"}`) or per-field messages
    for request bodies (`{"url": ["Please enter a valid URL"]}`).
    """

    success: Literal[False] = False
    error: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(default=None)
    request_id: Optional[str] = Field(default=None, description="Correlation ID for support")


# ══════════════════════════════════════════════════════════════════════════
# Bookmarks & Search
# ══════════════════════════════════════════════════════════════════════════


class TagItem(CamelModel):
    id: str
    name: str


class BookmarkItem(CamelModel):
    """
    What:  Public representation of an approved bookmark.
    Who:   Items of GET /api/bookmarks and GET /api/bookmarks/search.
    """

    id: str
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    tags: List[TagItem] = Field(default_factory=list)


class Pagination(CamelModel):
    """
    Offset pagination bookkeeping.

    has_more is `offset + len(page) < total`: a client asking past the end
    gets an empty page with has_more = False.
    """

    total: int = Field(ge=0)
    limit: int = Field(ge=1)
    offset: int = Field(ge=0)
    has_more: bool


class BookmarkListData(CamelModel):
    bookmarks: List[BookmarkItem]
    pagination: Pagination


class BookmarkDetail(BookmarkItem):
    """Full bookmark record for the moderation API."""

    status: BookmarkStatus
    image_source: Optional[str] = None
    submitter_name: Optional[str] = None
    submitter_github_url: Optional[str] = None
    approved_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookmarkDetailListData(CamelModel):
    bookmarks: List[BookmarkDetail]
    pagination: Pagination


# ══════════════════════════════════════════════════════════════════════════
# Submission
# ══════════════════════════════════════════════════════════════════════════


class BookmarkSubmitRequest(CamelModel):
    """
    What:  Body of POST /api/bookmarks.

    Rules:
        url                 1..2000 chars, absolute http(s) URL
        tags                1..10 entries, each 1..50 chars
        submitterName       optional, at most 100 chars
        submitterGithubUrl  optional, "" allowed, must point at github.com
    """

    url: str
    tags: List[str]
    submitter_name: Optional[str] = None
    submitter_github_url: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("URL is required")
        if len(v) > MAX_URL_LENGTH:
            raise ValueError(f"URL must be {MAX_URL_LENGTH} characters or less")
        if parse_and_normalize_url(v) is None:
            raise ValueError("Please enter a valid URL")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        if len(v) < 1:
            raise ValueError("At least one tag is required")
        if len(v) > MAX_TAGS:
            raise ValueError(f"Maximum {MAX_TAGS} tags allowed")
        for tag in v:
            if not tag.strip():
                raise ValueError("Tag cannot be empty")
            if len(tag) > MAX_TAG_LENGTH:
                raise ValueError(f"Tag must be {MAX_TAG_LENGTH} characters or less")
        return v

    @field_validator("submitter_name")
    @classmethod
    def validate_submitter_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if len(v) > MAX_SUBMITTER_NAME_LENGTH:
            raise ValueError(f"Name must be {MAX_SUBMITTER_NAME_LENGTH} characters or less")
        return v or None

    @field_validator("submitter_github_url")
    @classmethod
    def validate_github_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v.strip() == "":
            return None
        v = v.strip()
        if parse_and_normalize_url(v) is None:
            raise ValueError("Please enter a valid URL")
        if "github.com" not in v:
            raise ValueError("Please enter a valid GitHub URL")
        return v


class SubmissionData(CamelModel):
    bookmark_id: str
    message: str


# ══════════════════════════════════════════════════════════════════════════
# Moderation
# ══════════════════════════════════════════════════════════════════════════


class StatusUpdateRequest(CamelModel):
    status: BookmarkStatus


# ══════════════════════════════════════════════════════════════════════════
# Tags
# ══════════════════════════════════════════════════════════════════════════


class PopularTag(TagItem):
    """Tag with the number of approved bookmarks using it."""

    count: int = Field(ge=0)


class TagListData(CamelModel):
    tags: List[TagItem]
    pagination: Pagination


class PopularTagsData(CamelModel):
    tags: List[PopularTag]


# ══════════════════════════════════════════════════════════════════════════
# Health
# ══════════════════════════════════════════════════════════════════════════


class HealthResponse(BaseModel):
    """
    What:  Health check response for monitoring systems.

    Status values:
        healthy:    database reachable, screenshots available or disabled
        degraded:   screenshot circuit open (submissions fall back to no image)
        unhealthy:  database unreachable
    """

    status: str = Field(description="Overall: healthy, degraded, unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    screenshots: str = Field(description="available, disabled, or circuit_open")
    uptime_seconds: float

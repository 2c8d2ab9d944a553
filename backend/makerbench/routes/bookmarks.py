"""
MakerBench Backend — Bookmark Route Handlers
==============================================

What:  GET /api/bookmarks, GET /api/bookmarks/search and POST /api/bookmarks.
How:   Parses query parameters, delegates to SearchService / BookmarkService,
       wraps results in the success envelope.
Who:   Called by the web frontend and makerbench.client.BookmarkClient.

Query parameters are declared as plain strings. Parsing happens in
search_service so malformed values ("limit=abc", "offset=-1") produce the
400 error envelope naming the parameter.

Caching:
    - GET list/search: short public cache (60s); approved content changes rarely
    - POST: never cached
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from makerbench.database import get_db_session
from makerbench.schemas.bookmark import (
    BookmarkListData,
    BookmarkSubmitRequest,
    ErrorResponse,
    SubmissionData,
    SuccessResponse,
)
from makerbench.services.bookmark_service import bookmark_service
from makerbench.services.search_service import (
    parse_limit,
    parse_offset,
    parse_query,
    parse_tag_filter,
    search_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bookmarks"])

LIST_CACHE_CONTROL = "public, max-age=60"


@router.get(
    "/bookmarks",
    response_model=SuccessResponse[BookmarkListData],
    responses={
        400: {"description": "Malformed pagination parameters", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="List approved bookmarks",
)
async def list_bookmarks(
    response: Response,
    limit: Optional[str] = Query(default=None, description="Page size (1-100, default 20)"),
    offset: Optional[str] = Query(default=None, description="Bookmarks to skip (default 0)"),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[BookmarkListData]:
    """
    Approved bookmarks, newest first, each with its tags.

    Example:
        GET /api/bookmarks?limit=20&offset=40
    """
    data = await search_service.list_bookmarks(
        db,
        limit=parse_limit(limit),
        offset=parse_offset(offset),
    )
    response.headers["Cache-Control"] = LIST_CACHE_CONTROL
    response.headers["X-Total-Count"] = str(data.pagination.total)
    return SuccessResponse(data=data)


@router.get(
    "/bookmarks/search",
    response_model=SuccessResponse[BookmarkListData],
    responses={
        400: {"description": "Malformed search parameters", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Search approved bookmarks by text and tags",
)
async def search_bookmarks(
    response: Response,
    q: Optional[str] = Query(default=None, description="Text matched against title or description"),
    tags: Optional[str] = Query(
        default=None,
        description="Comma-separated tag names; a bookmark matches if it has ANY of them",
    ),
    limit: Optional[str] = Query(default=None, description="Page size (1-100, default 20)"),
    offset: Optional[str] = Query(default=None, description="Bookmarks to skip (default 0)"),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[BookmarkListData]:
    """
    Example client usage (load more):
        Page 1: GET /api/bookmarks/search?q=color&tags=design,css&limit=20
        Page 2: GET /api/bookmarks/search?q=color&tags=design,css&limit=20&offset=20
        (stop when pagination.hasMore is false)
    """
    data = await search_service.search_bookmarks(
        db,
        query=parse_query(q),
        tags=parse_tag_filter(tags),
        limit=parse_limit(limit),
        offset=parse_offset(offset),
    )
    response.headers["Cache-Control"] = LIST_CACHE_CONTROL
    response.headers["X-Total-Count"] = str(data.pagination.total)
    return SuccessResponse(data=data)


@router.post(
    "/bookmarks",
    response_model=SuccessResponse[SubmissionData],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid URL or tag", "model": ErrorResponse},
        409: {"description": "URL already submitted", "model": ErrorResponse},
        422: {"description": "Request body failed validation", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Submit a tool for review",
)
async def submit_bookmark(
    payload: BookmarkSubmitRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[SubmissionData]:
    """
    Stores the submission as `pending`. Page metadata and a preview image are
    collected during the request; failures there do not fail the submission.
    """
    data = await bookmark_service.submit_bookmark(db, payload)
    return SuccessResponse(data=data)

"""
MakerBench Backend — Tag Route Handlers
=========================================

What:  GET /api/tags (browse / autocomplete) and GET /api/tags/popular (tag cloud).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from makerbench.database import get_db_session
from makerbench.schemas.bookmark import (
    ErrorResponse,
    PopularTagsData,
    SuccessResponse,
    TagListData,
)
from makerbench.services.search_service import parse_limit, parse_offset, parse_query
from makerbench.services.tag_service import tag_service

router = APIRouter(prefix="/api/tags", tags=["Tags"])


@router.get(
    "",
    response_model=SuccessResponse[TagListData],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="List tags, optionally filtered by name",
)
async def list_tags(
    q: Optional[str] = Query(default=None, description="Substring of the tag name"),
    limit: Optional[str] = Query(default=None),
    offset: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[TagListData]:
    data = await tag_service.list_tags(
        db,
        query=parse_query(q),
        limit=parse_limit(limit),
        offset=parse_offset(offset),
    )
    return SuccessResponse(data=data)


@router.get(
    "/popular",
    response_model=SuccessResponse[PopularTagsData],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Tags ranked by number of approved bookmarks",
)
async def popular_tags(
    response: Response,
    limit: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[PopularTagsData]:
    tags = await tag_service.get_popular_tags(db, limit=parse_limit(limit))
    response.headers["Cache-Control"] = "public, max-age=300"
    return SuccessResponse(data=PopularTagsData(tags=tags))

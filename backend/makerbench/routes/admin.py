"""
MakerBench Backend — Moderation Route Handlers
================================================

What:  GET /api/admin/bookmarks (queue by status) and
       PATCH /api/admin/bookmarks/{id} (approve / reject).
Who:   Maintainers reviewing submissions.

Authentication:
    Every request must carry `X-Admin-Token` equal to settings.admin_token.
    When ADMIN_TOKEN is unset the endpoints always answer 403.
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from makerbench.config import settings
from makerbench.database import get_db_session
from makerbench.exceptions import AuthorizationError, ValidationError
from makerbench.models.bookmark import BookmarkStatus
from makerbench.schemas.bookmark import (
    BookmarkDetail,
    BookmarkDetailListData,
    ErrorResponse,
    StatusUpdateRequest,
    SuccessResponse,
)
from makerbench.services.bookmark_service import bookmark_service
from makerbench.services.search_service import parse_limit, parse_offset, search_service

logger = logging.getLogger(__name__)


async def require_admin(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
) -> None:
    """FastAPI dependency rejecting requests without the moderation token."""
    expected = settings.admin_token
    if not expected or not x_admin_token or not secrets.compare_digest(
        x_admin_token.encode(), expected.encode()
    ):
        logger.warning("Rejected moderation request with missing or invalid admin token")
        raise AuthorizationError()


router = APIRouter(
    prefix="/api/admin",
    tags=["Moderation"],
    dependencies=[Depends(require_admin)],
    responses={403: {"description": "Missing or invalid admin token", "model": ErrorResponse}},
)


@router.get(
    "/bookmarks",
    response_model=SuccessResponse[BookmarkDetailListData],
    summary="Moderation queue",
)
async def list_bookmarks_by_status(
    status: str = Query(default=BookmarkStatus.PENDING.value),
    limit: Optional[str] = Query(default=None),
    offset: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[BookmarkDetailListData]:
    try:
        wanted = BookmarkStatus(status.strip().lower())
    except ValueError:
        raise ValidationError(
            message="Invalid 'status' parameter: must be pending, approved or rejected",
            field="status",
            context={"value": status},
        )

    data = await search_service.list_bookmarks_by_status(
        db,
        wanted,
        limit=parse_limit(limit),
        offset=parse_offset(offset),
    )
    return SuccessResponse(data=data)


@router.patch(
    "/bookmarks/{bookmark_id}",
    response_model=SuccessResponse[BookmarkDetail],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Approve or reject a bookmark",
)
async def update_bookmark_status(
    bookmark_id: str,
    payload: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[BookmarkDetail]:
    bookmark = await bookmark_service.update_bookmark_status(db, bookmark_id, payload.status)
    return SuccessResponse(data=bookmark)

"""
MakerBench Backend — Stored File Route
========================================

What:  GET /api/files/{path}: serves screenshots written by ImageStorageService.
Who:   <img> tags rendering bookmarks whose imageUrl points here.

Security:
    ImageStorageService.resolve() refuses paths outside STORAGE_ROOT, so
    "../../etc/passwd" style requests get a 400, and missing files a 404.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from makerbench.schemas.bookmark import ErrorResponse
from makerbench.services.image_storage import image_storage

router = APIRouter(prefix="/api", tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    summary="Serve stored screenshot images",
    responses={
        200: {"description": "Image file", "content": {"image/png": {}}},
        400: {"description": "Invalid path", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(file_path: str) -> FileResponse:
    full_path = image_storage.resolve(file_path)
    return FileResponse(
        path=str(full_path),
        media_type="image/png",
        headers={"Cache-Control": "public, max-age=86400"},
    )

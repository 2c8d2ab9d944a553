"""
MakerBench Backend — Screenshot Image Storage
===============================================

What:  Stores captured screenshots on local disk and serves them back.
How:   Validates the PNG signature and size, writes asynchronously with
       aiofiles into month-organized directories named after the bookmark.
Who:   BookmarkService (store/cleanup) and GET /api/files/{path} (resolve).

Directory Structure:
    storage/
    └── screenshots/
        └── 2024/
            └── 01/
                ├── 6f1c...-a2.png      ← <bookmark_id>.png
                └── 9b3e...-17.png

    Public URL: /api/files/screenshots/2024/01/<bookmark_id>.png

Security:
    - Filenames are bookmark UUIDs generated server-side; no user input.
    - resolve() rejects any path that escapes the storage root (../ etc.).
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from makerbench.config import settings
from makerbench.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
SCREENSHOT_DIR = "screenshots"
PUBLIC_PREFIX = "/api/files"


class ImageStorageService:
    """
    Local-disk image store.

    Args:
        storage_root: Override the default storage path (used in tests).
    """

    def __init__(self, storage_root: Optional[str] = None):
        self._storage_root = storage_root

    @property
    def storage_root(self) -> Path:
        return Path(self._storage_root or settings.storage_root).resolve()

    # ── Validation ────────────────────────────────────────────────────────

    def validate_image(self, content: bytes) -> None:
        """
        Raises:
            ValidationError: empty, larger than settings.max_image_size, or
                not a PNG.
        """
        if not content:
            raise ValidationError(message="Screenshot is empty", field="image")
        if len(content) > settings.max_image_size:
            max_mb = settings.max_image_size / (1024 * 1024)
            raise ValidationError(
                message=f"Screenshot exceeds maximum of {max_mb:.0f}MB",
                field="image",
                context={"size": len(content)},
            )
        if not content.startswith(PNG_SIGNATURE):
            raise ValidationError(
                message="Screenshot is not a PNG image",
                field="image",
            )

    # ── Paths ─────────────────────────────────────────────────────────────

    def _storage_path(self, bookmark_id: str) -> Tuple[Path, str]:
        now = datetime.now(timezone.utc)
        relative_path = f"{SCREENSHOT_DIR}/{now:%Y/%m}/{bookmark_id}.png"
        return self.storage_root / relative_path, relative_path

    @staticmethod
    def public_url(relative_path: str) -> str:
        return f"{PUBLIC_PREFIX}/{relative_path}"

    def resolve(self, relative_path: str) -> Path:
        """
        Absolute path of a stored file.

        Raises:
            ValidationError: the path escapes the storage root (→ 400)
            NotFoundError: no such file (→ 404)
        """
        root = self.storage_root
        full_path = (root / relative_path).resolve()
        if not full_path.is_relative_to(root):
            raise ValidationError(message="Invalid file path", field="path")
        if not full_path.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return full_path

    # ── Storage ───────────────────────────────────────────────────────────

    async def store_screenshot(self, bookmark_id: str, content: bytes) -> Tuple[str, str]:
        """
        Validate and write a screenshot.

        Returns:
            Tuple of (absolute_path, public_url).

        Raises:
            ValidationError: content failed validation
            FileStorageError: directory creation or write failed
        """
        self.validate_image(content)
        absolute_path, relative_path = self._storage_path(bookmark_id)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store screenshot at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save screenshot",
                context={"path": relative_path, "os_error": str(e)},
            ) from e

        logger.info("Screenshot stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), self.public_url(relative_path)

    async def cleanup_file(self, file_path: str) -> None:
        """Best-effort delete; failures are logged, never raised."""
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))


# ── Singleton Instance ────────────────────────────────────────────────────
image_storage = ImageStorageService()

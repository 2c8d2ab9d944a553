"""
MakerBench Backend — Image Storage Tests
==========================================

What we test:
    ✅ PNG validation (empty, oversized, wrong signature)
    ✅ Screenshots written under screenshots/YYYY/MM/<bookmark_id>.png
    ✅ resolve() refuses paths outside the storage root
    ✅ cleanup_file tolerates missing files
"""

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from makerbench.exceptions import NotFoundError, ValidationError
from makerbench.services.image_storage import ImageStorageService


class TestValidateImage:

    def setup_method(self):
        self.service = ImageStorageService(storage_root="/tmp/unused")

    def test_valid_png(self, png_bytes):
        self.service.validate_image(png_bytes)

    def test_empty_rejected(self):
        with pytest.raises(ValidationError):
            self.service.validate_image(b"")

    def test_non_png_rejected(self):
        jpeg = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00"
        with pytest.raises(ValidationError) as exc_info:
            self.service.validate_image(jpeg)
        assert exc_info.value.message == "Screenshot is not a PNG image"

    def test_oversized_rejected(self, png_bytes):
        with patch('makerbench.services.image_storage.settings') as mock_settings:
            mock_settings.max_image_size = 8
            with pytest.raises(ValidationError):
                self.service.validate_image(png_bytes)


class TestStoreAndResolve:

    @pytest.mark.asyncio
    async def test_store_creates_month_directory(self, tmp_path, png_bytes):
        service = ImageStorageService(storage_root=str(tmp_path))

        path, public_url = await service.store_screenshot("bookmark-1", png_bytes)

        month = datetime.now(timezone.utc).strftime("%Y/%m")
        assert Path(path) == tmp_path.resolve() / "screenshots" / month / "bookmark-1.png"
        assert Path(path).read_bytes() == png_bytes
        assert public_url == f"/api/files/screenshots/{month}/bookmark-1.png"

    @pytest.mark.asyncio
    async def test_store_rejects_invalid_content(self, tmp_path):
        service = ImageStorageService(storage_root=str(tmp_path))
        with pytest.raises(ValidationError):
            await service.store_screenshot("bookmark-1", b"not a png")
        assert not (tmp_path / "screenshots").exists()

    @pytest.mark.asyncio
    async def test_resolve_stored_file(self, tmp_path, png_bytes):
        service = ImageStorageService(storage_root=str(tmp_path))
        _, public_url = await service.store_screenshot("bookmark-2", png_bytes)
        relative = public_url[len("/api/files/"):]

        assert service.resolve(relative).read_bytes() == png_bytes

    def test_resolve_rejects_traversal(self, tmp_path):
        storage = tmp_path / "storage"
        storage.mkdir()
        (tmp_path / "secret.txt").write_text("secret")
        service = ImageStorageService(storage_root=str(storage))

        with pytest.raises(ValidationError):
            service.resolve("../secret.txt")

    def test_resolve_missing_file(self, tmp_path):
        service = ImageStorageService(storage_root=str(tmp_path))
        with pytest.raises(NotFoundError):
            service.resolve("screenshots/2024/01/missing.png")


class TestCleanup:

    @pytest.mark.asyncio
    async def test_cleanup_removes_file(self, tmp_path):
        target = tmp_path / "x.png"
        target.write_bytes(b"data")
        await ImageStorageService(storage_root=str(tmp_path)).cleanup_file(str(target))
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_cleanup_missing_file_is_silent(self, tmp_path):
        await ImageStorageService(storage_root=str(tmp_path)).cleanup_file(
            str(tmp_path / "gone.png")
        )

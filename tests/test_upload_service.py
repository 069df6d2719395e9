"""
Batch upload, compensation on failure, and best-effort deletes.
"""

import pytest

from product_service.core.errors import ApiError, InternalError, ValidationError
from product_service.services.upload_service import ImageFile, UploadService

from tests.conftest import make_image


@pytest.fixture
def uploads(media):
    return UploadService(media)


class TestUploadImages:
    @pytest.mark.asyncio
    async def test_empty_input_uploads_nothing(self, uploads, media):
        assert await uploads.upload_images([]) == []
        assert media.uploaded == []

    @pytest.mark.asyncio
    async def test_results_follow_input_order(self, uploads):
        files = [make_image("a.jpg"), make_image("b.png", "image/png"), make_image("c.webp", "image/webp")]
        images = await uploads.upload_images(files)
        assert [image["altText"] for image in images] == ["a", "b", "c"]
        assert all(image["url"].endswith(file.filename) for image, file in zip(images, files))

    @pytest.mark.asyncio
    async def test_alt_text_truncated(self, uploads):
        name = "x" * 200 + ".jpg"
        [image] = await uploads.upload_images([make_image(name)])
        assert len(image["altText"]) == 150

    @pytest.mark.asyncio
    async def test_one_failure_deletes_every_success(self, uploads, media):
        media.fail_uploads = {"bad.jpg"}
        files = [make_image("a.jpg"), make_image("bad.jpg"), make_image("c.jpg"), make_image("d.jpg")]

        with pytest.raises(InternalError) as exc_info:
            await uploads.upload_images(files)

        assert exc_info.value.code == "PRODUCT_IMAGE_UPLOAD_FAILED"
        assert len(media.uploaded) == 3
        assert sorted(media.deleted) == sorted(media.uploaded)


class TestExecuteWithUploadRollback:
    @pytest.mark.asyncio
    async def test_success_returns_action_result(self, uploads, media):
        images = await uploads.upload_images([make_image()])

        async def action(passed):
            return {"saved": len(passed)}

        assert await uploads.execute_with_upload_rollback(images, action) == {"saved": 1}
        assert media.deleted == []

    @pytest.mark.asyncio
    async def test_failure_deletes_each_file_once_and_reraises_unchanged(self, uploads, media):
        images = await uploads.upload_images([make_image("a.jpg"), make_image("b.jpg")])
        error = ValidationError("name taken", code="DUPLICATE_PRODUCT_NAME")

        async def action(passed):
            raise error

        with pytest.raises(ApiError) as exc_info:
            await uploads.execute_with_upload_rollback(images, action, rollback_log_code="TEST_ROLLBACK")

        assert exc_info.value is error
        assert sorted(media.deleted) == sorted(image["fileId"] for image in images)

    @pytest.mark.asyncio
    async def test_nothing_to_delete_without_images(self, uploads, media):
        async def action(passed):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await uploads.execute_with_upload_rollback([], action)
        assert media.deleted == []


class TestDeleteImages:
    @pytest.mark.asyncio
    async def test_returns_failed_ids_without_raising(self, uploads, media):
        media.fail_deletes = {"f2"}
        failed = await uploads.delete_images(["f1", "f2", "f3", None, ""])
        assert failed == ["f2"]
        assert media.deleted == ["f1", "f3"]

    @pytest.mark.asyncio
    async def test_empty(self, uploads):
        assert await uploads.delete_images([]) == []


def test_default_alt_text_uses_stem():
    assert ImageFile("summer.sale.jpg", "image/jpeg", b"").default_alt_text == "summer"

"""
Guard order, ownership, and upload compensation for variants and inventory items.
"""

from datetime import date

import pytest
from bson import ObjectId

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import ForbiddenError, InternalError, NotFoundError, ValidationError
from product_service.schemas.inventory import InventoryItemCreate, InventoryItemUpdate
from product_service.schemas.variant import VariantCreate, VariantUpdate

from tests.conftest import make_image, seed_product


def _variant_data(product_id, **overrides):
    return VariantCreate.model_validate(
        {
            "productId": str(product_id),
            "options": {"Size": "100g"},
            "baseUnit": "gram",
            "price": {"amount": 249, "currency": "inr"},
            **overrides,
        }
    )


def _inventory_data(variant_id, **overrides):
    return InventoryItemCreate.model_validate(
        {
            "variantId": str(variant_id),
            "batchNumber": "B-001",
            "stockInBaseUnits": 500,
            "pricePerBaseUnit": {"amount": 2.5},
            **overrides,
        }
    )


class TestVariantCreate:
    @pytest.mark.asyncio
    async def test_uploaded_images_round_trip(self, container, admin, seller, media):
        product = await seed_product(container, admin, seller)
        files = [make_image("front.jpg"), make_image("back.png", "image/png")]

        variant = await container.variants.create(_variant_data(product["_id"]), files, seller)

        stored = await container.variants.get_by_id(str(variant["_id"]))
        assert [image["fileId"] for image in stored["variantImages"]] == media.uploaded
        assert [image["url"] for image in stored["variantImages"]] == [
            f"https://media.test/{file_id}/{file.filename}" for file_id, file in zip(media.uploaded, files)
        ]
        assert stored["price"] == {"amount": 249, "currency": "INR"}

    @pytest.mark.asyncio
    async def test_sku_generated_from_ids(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        variant = await container.variants.create(_variant_data(product["_id"]), [make_image()], seller)
        expected = f"{str(product['_id'])[-6:]}-{str(variant['_id'])[-6:]}".upper()
        assert variant["sku"] == expected

    @pytest.mark.asyncio
    async def test_duplicate_sku_checked_before_upload(self, container, admin, seller, media):
        product = await seed_product(container, admin, seller)
        await container.variants.create(_variant_data(product["_id"], sku="TEA-100"), [make_image()], seller)
        uploads_before = list(media.uploaded)

        with pytest.raises(ValidationError) as exc_info:
            await container.variants.create(_variant_data(product["_id"], sku="TEA-100"), [make_image()], seller)

        assert exc_info.value.code == "DUPLICATE_VARIANT_SKU"
        assert media.uploaded == uploads_before

    @pytest.mark.asyncio
    async def test_images_required(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        with pytest.raises(ValidationError) as exc_info:
            await container.variants.create(_variant_data(product["_id"]), [], seller)
        assert exc_info.value.code == "NO_IMAGES"

    @pytest.mark.asyncio
    async def test_other_seller_rejected(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        intruder = CurrentUser(id=str(ObjectId()), role="seller")
        with pytest.raises(ForbiddenError) as exc_info:
            await container.variants.create(_variant_data(product["_id"]), [make_image()], intruder)
        assert exc_info.value.code == "FORBIDDEN_NOT_OWNER"

    @pytest.mark.asyncio
    async def test_inactive_product_rejected(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        await container.products.disable(str(product["_id"]), admin)
        with pytest.raises(ValidationError) as exc_info:
            await container.variants.create(_variant_data(product["_id"]), [make_image()], seller)
        assert exc_info.value.code == "PRODUCT_INACTIVE"

    @pytest.mark.asyncio
    async def test_persist_failure_deletes_each_upload_once(self, container, admin, seller, media, monkeypatch):
        product = await seed_product(container, admin, seller)

        async def broken_create(document):
            raise RuntimeError("write concern timeout")

        monkeypatch.setattr(container.variants.variants, "create", broken_create)

        with pytest.raises(InternalError) as exc_info:
            await container.variants.create(
                _variant_data(product["_id"]), [make_image("a.jpg"), make_image("b.jpg")], seller
            )

        assert exc_info.value.code == "CREATE_VARIANT_ERROR"
        assert exc_info.value.details == "write concern timeout"
        assert sorted(media.deleted) == sorted(media.uploaded)
        assert len(media.deleted) == 2


class TestVariantMutations:
    @pytest.mark.asyncio
    async def test_disable_enable_idempotent(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        variant = await container.variants.create(_variant_data(product["_id"]), [make_image()], seller)
        variant_id = str(variant["_id"])

        assert (await container.variants.disable(variant_id, seller))["isActive"] is False
        assert (await container.variants.disable(variant_id, seller))["isActive"] is False
        assert (await container.variants.enable(variant_id, seller))["isActive"] is True
        assert (await container.variants.enable(variant_id, seller))["isActive"] is True

    @pytest.mark.asyncio
    async def test_update_appends_new_uploads(self, container, admin, seller, media):
        product = await seed_product(container, admin, seller)
        variant = await container.variants.create(_variant_data(product["_id"]), [make_image("a.jpg")], seller)

        updated = await container.variants.update(
            str(variant["_id"]), VariantUpdate(baseUnit="kg"), [make_image("b.jpg")], seller
        )

        assert updated["baseUnit"] == "kg"
        assert [image["fileId"] for image in updated["variantImages"]] == media.uploaded

    @pytest.mark.asyncio
    async def test_replace_unknown_image(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        variant = await container.variants.create(_variant_data(product["_id"]), [make_image()], seller)
        with pytest.raises(NotFoundError) as exc_info:
            await container.variants.update_image(str(variant["_id"]), "missing", make_image("new.jpg"), seller)
        assert exc_info.value.code == "VARIANT_IMAGE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_replace_image_deletes_old_one(self, container, admin, seller, media):
        product = await seed_product(container, admin, seller)
        variant = await container.variants.create(_variant_data(product["_id"]), [make_image("old.jpg")], seller)
        old_id = variant["variantImages"][0]["fileId"]

        new_image = await container.variants.update_image(str(variant["_id"]), old_id, make_image("new.jpg"), seller)

        stored = await container.variants.get_by_id(str(variant["_id"]))
        assert stored["variantImages"] == [new_image]
        assert media.deleted == [old_id]

    @pytest.mark.asyncio
    async def test_delete_reports_orphaned_images(self, container, admin, seller, media):
        product = await seed_product(container, admin, seller)
        variant = await container.variants.create(_variant_data(product["_id"]), [make_image()], seller)
        media.fail_deletes = set(media.uploaded)

        result = await container.variants.delete(str(variant["_id"]), seller)

        assert result["orphanedFileIds"] == media.uploaded
        with pytest.raises(NotFoundError):
            await container.variants.get_by_id(str(variant["_id"]))


class TestInventoryItems:
    async def _variant(self, container, admin, seller):
        product = await seed_product(container, admin, seller)
        return await container.variants.create(_variant_data(product["_id"]), [make_image()], seller)

    @pytest.mark.asyncio
    async def test_create_defaults(self, container, admin, seller):
        variant = await self._variant(container, admin, seller)
        item = await container.inventory.create(_inventory_data(variant["_id"]), seller)
        assert item["variantId"] == variant["_id"]
        assert item["status"] == "Sealed"
        assert item["gstPercentage"] == 18
        assert item["pricePerBaseUnit"] == {"amount": 2.5, "currency": "INR"}

    @pytest.mark.asyncio
    async def test_missing_variant(self, container, seller):
        with pytest.raises(NotFoundError) as exc_info:
            await container.inventory.create(_inventory_data(ObjectId()), seller)
        assert exc_info.value.code == "VARIANT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_duplicate_batch(self, container, admin, seller):
        variant = await self._variant(container, admin, seller)
        await container.inventory.create(_inventory_data(variant["_id"]), seller)
        with pytest.raises(ValidationError) as exc_info:
            await container.inventory.create(_inventory_data(variant["_id"]), seller)
        assert exc_info.value.code == "DUPLICATE_BATCH_NUMBER"

    @pytest.mark.asyncio
    async def test_other_seller_cannot_mutate(self, container, admin, seller):
        variant = await self._variant(container, admin, seller)
        item = await container.inventory.create(_inventory_data(variant["_id"]), seller)
        intruder = CurrentUser(id=str(ObjectId()), role="seller")

        for call in (
            container.inventory.update(str(item["_id"]), InventoryItemUpdate(stockInBaseUnits=1), intruder),
            container.inventory.disable(str(item["_id"]), intruder),
            container.inventory.delete(str(item["_id"]), intruder),
        ):
            with pytest.raises(ForbiddenError) as exc_info:
                await call
            assert exc_info.value.code == "FORBIDDEN_NOT_OWNER"

    @pytest.mark.asyncio
    async def test_admin_bypasses_ownership(self, container, admin, seller):
        variant = await self._variant(container, admin, seller)
        item = await container.inventory.create(_inventory_data(variant["_id"]), seller)
        updated = await container.inventory.update(str(item["_id"]), InventoryItemUpdate(stockInBaseUnits=7), admin)
        assert updated["stockInBaseUnits"] == 7

    @pytest.mark.asyncio
    async def test_disable_enable_idempotent(self, container, admin, seller):
        variant = await self._variant(container, admin, seller)
        item = await container.inventory.create(_inventory_data(variant["_id"]), seller)
        item_id = str(item["_id"])

        assert (await container.inventory.disable(item_id, seller))["isActive"] is False
        assert (await container.inventory.disable(item_id, seller))["isActive"] is False
        assert (await container.inventory.enable(item_id, seller))["isActive"] is True

    @pytest.mark.asyncio
    async def test_unexpected_store_error_is_wrapped(self, container, admin, seller, monkeypatch):
        variant = await self._variant(container, admin, seller)
        item = await container.inventory.create(_inventory_data(variant["_id"]), seller)

        async def broken_update(id, data):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(container.inventory.items, "update_by_id", broken_update)

        with pytest.raises(InternalError) as exc_info:
            await container.inventory.disable(str(item["_id"]), seller)
        assert exc_info.value.code == "DISABLE_INVENTORY_ERROR"
        assert exc_info.value.details == "connection reset"


class TestInventoryItemUpdate:
    async def _item(self, container, admin, seller, **overrides):
        product = await seed_product(container, admin, seller)
        variant = await container.variants.create(_variant_data(product["_id"]), [make_image()], seller)
        return await container.inventory.create(_inventory_data(variant["_id"], **overrides), seller)

    @pytest.mark.asyncio
    async def test_partial_dates_keep_stored_mfg_date(self, container, admin, seller):
        item = await self._item(
            container,
            admin,
            seller,
            manufacturingDetails={"mfgDate": "2024-01-01T00:00:00Z", "expDate": "2026-01-01T00:00:00Z"},
        )
        changes = InventoryItemUpdate.model_validate({"manufacturingDetails": {"expDate": "2027-01-01T00:00:00Z"}})

        updated = await container.inventory.update(str(item["_id"]), changes, seller)

        assert updated["manufacturingDetails"]["mfgDate"].date() == date(2024, 1, 1)
        assert updated["manufacturingDetails"]["expDate"].date() == date(2027, 1, 1)

    @pytest.mark.asyncio
    async def test_exp_date_checked_against_stored_mfg_date(self, container, admin, seller):
        item = await self._item(
            container,
            admin,
            seller,
            manufacturingDetails={"mfgDate": "2024-01-01T00:00:00Z", "expDate": "2026-01-01T00:00:00Z"},
        )
        changes = InventoryItemUpdate.model_validate({"manufacturingDetails": {"expDate": "2023-01-01T00:00:00Z"}})

        with pytest.raises(ValidationError) as exc_info:
            await container.inventory.update(str(item["_id"]), changes, seller)

        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.details[0]["field"] == "manufacturingDetails.expDate"
        stored = await container.inventory.get_by_id(str(item["_id"]))
        assert stored["manufacturingDetails"]["expDate"].date() == date(2026, 1, 1)

    @pytest.mark.asyncio
    async def test_rename_to_existing_batch_rejected(self, container, admin, seller):
        first = await self._item(container, admin, seller)
        second = await container.inventory.create(_inventory_data(first["variantId"], batchNumber="B-002"), seller)

        with pytest.raises(ValidationError) as exc_info:
            await container.inventory.update(str(second["_id"]), InventoryItemUpdate(batchNumber="B-001"), seller)
        assert exc_info.value.code == "DUPLICATE_BATCH_NUMBER"

    @pytest.mark.asyncio
    async def test_empty_update_returns_item_unchanged(self, container, admin, seller):
        item = await self._item(container, admin, seller)
        unchanged = await container.inventory.update(str(item["_id"]), InventoryItemUpdate(), seller)
        assert unchanged["_id"] == item["_id"]
        assert unchanged["stockInBaseUnits"] == item["stockInBaseUnits"]

    @pytest.mark.asyncio
    async def test_update_on_inactive_product_rejected(self, container, admin, seller):
        item = await self._item(container, admin, seller)
        variant = await container.variants.get_by_id(str(item["variantId"]))
        await container.products.disable(str(variant["productId"]), seller)

        with pytest.raises(ValidationError) as exc_info:
            await container.inventory.update(str(item["_id"]), InventoryItemUpdate(stockInBaseUnits=3), seller)
        assert exc_info.value.code == "PRODUCT_INACTIVE"


class TestInventoryGetAll:
    """Paging and filtering through the joined aggregation on the in-memory store."""

    async def _seed(self, container, admin, seller):
        other_seller = CurrentUser(id=str(ObjectId()), role="seller")
        green = await seed_product(container, admin, seller, name="Green Tea")
        black = await seed_product(container, admin, other_seller, name="Black Tea")
        green_variant = await container.variants.create(
            _variant_data(green["_id"], sku="GT-100"), [make_image()], seller
        )
        black_variant = await container.variants.create(
            _variant_data(black["_id"], sku="BT-250"), [make_image()], other_seller
        )
        for number in range(4):
            await container.inventory.create(_inventory_data(green_variant["_id"], batchNumber=f"G-{number}"), seller)
        for number in range(3):
            await container.inventory.create(
                _inventory_data(black_variant["_id"], batchNumber=f"K-{number}"), other_seller
            )
        return green_variant, black_variant

    @pytest.mark.asyncio
    async def test_pages_share_total_and_respect_limit(self, container, admin, seller):
        await self._seed(container, admin, seller)

        pages = [await container.inventory.get_all({}, {}, page, 3) for page in (1, 2, 3)]

        assert [len(page["items"]) for page in pages] == [3, 3, 1]
        assert {page["meta"]["total"] for page in pages} == {7}
        assert pages[0]["meta"]["hasNextPage"] is True
        assert pages[2]["meta"]["hasNextPage"] is False
        seen = {item["_id"] for page in pages for item in page["items"]}
        assert len(seen) == 7

    @pytest.mark.asyncio
    async def test_filters_only_narrow(self, container, admin, seller):
        await self._seed(container, admin, seller)

        filters = {}
        totals = [(await container.inventory.get_all(filters, {}, 1, 10))["meta"]["total"]]
        for key, value in (("productName", "green"), ("sku", "GT"), ("sellerId", seller.id)):
            filters = {**filters, key: value}
            totals.append((await container.inventory.get_all(filters, {}, 1, 10))["meta"]["total"])

        assert totals == sorted(totals, reverse=True)
        assert totals[0] == 7
        assert totals[-1] == 4

    @pytest.mark.asyncio
    async def test_conflicting_filters_yield_empty_page(self, container, admin, seller):
        await self._seed(container, admin, seller)
        result = await container.inventory.get_all({"productName": "black", "sellerId": seller.id}, {}, 1, 10)
        assert result["items"] == []
        assert result["meta"]["total"] == 0

    @pytest.mark.asyncio
    async def test_items_carry_joined_variant_and_product(self, container, admin, seller):
        green_variant, _ = await self._seed(container, admin, seller)

        result = await container.inventory.get_all({"sku": "GT-100"}, {}, 1, 10)

        assert result["meta"]["total"] == 4
        for item in result["items"]:
            assert item["variant"]["_id"] == green_variant["_id"]
            assert item["variant"]["sku"] == "GT-100"
            assert item["product"]["name"] == "Green Tea"
            assert str(item["product"]["sellerId"]) == seller.id
            assert "description" not in item["product"]

    @pytest.mark.asyncio
    async def test_price_sort_ascending(self, container, admin, seller):
        green_variant, _ = await self._seed(container, admin, seller)
        cheap = await container.inventory.create(
            _inventory_data(green_variant["_id"], batchNumber="G-cheap", pricePerBaseUnit={"amount": 0.5}), seller
        )

        result = await container.inventory.get_all({}, {"sortBy": "price", "sortOrder": "asc"}, 1, 1)

        assert result["items"][0]["_id"] == cheap["_id"]
        assert result["meta"]["total"] == 8

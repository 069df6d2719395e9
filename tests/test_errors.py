"""
Error classification and the JSON envelope helpers.
"""

from datetime import datetime, timezone

import pytest
from bson import ObjectId
from bson.errors import InvalidId
from opentelemetry import trace
from pymongo.errors import DuplicateKeyError

from product_service.api.responses import serialize
from product_service.core.errors import (
    ApiError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
    convert_error,
)
from product_service.services.base import service_operation


class TestConvertError:
    def test_api_error_passes_through(self):
        error = NotFoundError("Variant not found", code="VARIANT_NOT_FOUND")
        assert convert_error(error) is error

    def test_duplicate_key_becomes_conflict(self):
        exc = DuplicateKeyError(
            "E11000 duplicate key", 11000, {"keyValue": {"variantId": ObjectId("0" * 24), "batchNumber": "B1"}}
        )
        error = convert_error(exc)
        assert isinstance(error, ConflictError)
        assert error.status_code == 409
        assert error.code == "DB_DUPLICATE"
        assert error.details == {"keyValue": {"variantId": "0" * 24, "batchNumber": "B1"}}

    def test_invalid_id(self):
        error = convert_error(InvalidId("'x' is not a valid ObjectId"))
        assert isinstance(error, ValidationError)
        assert error.code == "INVALID_ID"

    def test_unknown_error_wrapped_with_operation_code(self):
        error = convert_error(KeyError("price"), code="UPDATE_VARIANT_ERROR", message="Failed to update variant")
        assert isinstance(error, InternalError)
        assert error.code == "UPDATE_VARIANT_ERROR"
        assert error.message == "Failed to update variant"
        assert error.details == "'price'"

    def test_to_dict_omits_missing_details(self):
        assert ValidationError("bad").to_dict() == {"code": "VALIDATION_ERROR", "message": "bad"}


class _Operations:
    def __init__(self):
        self.tracer = trace.get_tracer("tests")

    @service_operation("service.test.classified", "TEST_FAILED", "Test failed")
    async def classified(self):
        raise NotFoundError("gone", code="GONE")

    @service_operation("service.test.unclassified", "TEST_FAILED", "Test failed")
    async def unclassified(self):
        raise RuntimeError("disk full")


class TestServiceOperation:
    @pytest.mark.asyncio
    async def test_classified_error_propagates_unchanged(self):
        with pytest.raises(NotFoundError) as exc_info:
            await _Operations().classified()
        assert exc_info.value.code == "GONE"

    @pytest.mark.asyncio
    async def test_unclassified_error_wrapped(self):
        with pytest.raises(ApiError) as exc_info:
            await _Operations().unclassified()
        assert exc_info.value.code == "TEST_FAILED"
        assert exc_info.value.details == "disk full"
        assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_serialize_renames_ids_and_stringifies():
    oid = ObjectId()
    when = datetime(2024, 5, 1, tzinfo=timezone.utc)
    document = {"_id": oid, "variant": {"_id": oid, "tags": [oid]}, "createdAt": when}
    assert serialize(document) == {
        "id": str(oid),
        "variant": {"id": str(oid), "tags": [str(oid)]},
        "createdAt": "2024-05-01T00:00:00+00:00",
    }

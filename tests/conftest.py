"""
Shared fixtures: in-memory Mongo, a scriptable media host, and an app with auth overridden.
"""

import itertools
from typing import Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from product_service.api.deps import get_current_user
from product_service.clients.auth_client import CurrentUser
from product_service.container import build_container
from product_service.core.errors import MediaHostError, UnauthorizedError
from product_service.main import create_app
from product_service.schemas.category import CategoryCreate
from product_service.schemas.product import ProductCreate
from product_service.services.upload_service import ImageFile


class FakeMediaHost:
    """Stands in for ImageKitClient. Filenames in ``fail_uploads`` and ids in ``fail_deletes`` fail."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.uploaded = []
        self.deleted = []
        self.fail_uploads = set()
        self.fail_deletes = set()

    async def upload(self, content: bytes, filename: str, content_type: str = "application/octet-stream") -> dict:
        if filename in self.fail_uploads:
            raise MediaHostError(f"upload rejected for {filename}")
        file_id = f"file_{next(self._ids)}"
        self.uploaded.append(file_id)
        return {"fileId": file_id, "url": f"https://media.test/{file_id}/{filename}", "name": filename}

    async def delete(self, file_id: str) -> None:
        if file_id in self.fail_deletes:
            raise MediaHostError(f"delete rejected for {file_id}", code="IMAGEKIT_DELETE_ERROR")
        self.deleted.append(file_id)


class FakeAuth:
    def __init__(self):
        self.user: Optional[CurrentUser] = None

    def login(self, role: str, user_id: Optional[str] = None) -> CurrentUser:
        self.user = CurrentUser(id=user_id or str(ObjectId()), role=role)
        return self.user

    def logout(self):
        self.user = None

    def current(self) -> CurrentUser:
        if self.user is None:
            raise UnauthorizedError("Authentication credentials missing", code="MISSING_CREDENTIALS")
        return self.user


def make_image(name: str = "photo.jpg", content_type: str = "image/jpeg") -> ImageFile:
    return ImageFile(filename=name, content_type=content_type, content=b"\xff\xd8\xff" + name.encode())


@pytest.fixture
def db():
    return AsyncMongoMockClient()["product_service_test"]


@pytest.fixture
def media():
    return FakeMediaHost()


@pytest.fixture
def container(db, media):
    return build_container(db, media_client=media, auth_client=object())


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def client(container, auth):
    app = create_app(container)
    app.dependency_overrides[get_current_user] = auth.current
    return TestClient(app)


@pytest.fixture
def admin():
    return CurrentUser(id=str(ObjectId()), role="admin")


@pytest.fixture
def seller():
    return CurrentUser(id=str(ObjectId()), role="seller")


async def seed_product(container, admin, seller, name="Green Tea", **overrides):
    """Category plus one active product owned by ``seller``, created through the services."""
    category = await container.categories.create(CategoryCreate(name=f"{name} category"), admin)
    data = ProductCreate.model_validate(
        {
            "name": name,
            "description": "Loose leaf, single estate",
            "brand": "Leafy",
            "categoryId": str(category["_id"]),
            "sellerId": seller.id,
            "attributes": ["Size"],
            "baseImages": [{"url": "https://media.test/seed.jpg", "fileId": "seed"}],
            **overrides,
        }
    )
    return await container.products.create(data, [], admin)

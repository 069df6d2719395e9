"""
Auth and media host clients against mocked transports.
"""

import httpx
import pytest

from product_service.clients.auth_client import AuthClient
from product_service.clients.imagekit_client import ImageKitClient
from product_service.core.errors import MediaHostError, ServiceUnavailableError, UnauthorizedError


def _auth_client(handler):
    return AuthClient(base_url="http://auth.test", timeout=1, transport=httpx.MockTransport(handler))


class TestAuthClient:
    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        client = _auth_client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(UnauthorizedError) as exc_info:
            await client.verify(None, None)
        assert exc_info.value.code == "MISSING_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_forwards_credentials_and_parses_user(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["cookie"] = request.headers.get("cookie")
            seen["authorization"] = request.headers.get("authorization")
            return httpx.Response(200, json={"success": True, "data": {"user": {"userId": "u1", "role": "seller"}}})

        user = await _auth_client(handler).verify("token=abc", "Bearer xyz")

        assert (user.id, user.role) == ("u1", "seller")
        assert seen == {"path": "/api/auth/verify", "cookie": "token=abc", "authorization": "Bearer xyz"}

    @pytest.mark.asyncio
    async def test_rejected_session(self):
        client = _auth_client(lambda request: httpx.Response(401, json={"message": "expired"}))
        with pytest.raises(UnauthorizedError) as exc_info:
            await client.verify("token=old", None)
        assert exc_info.value.code == "AUTHENTICATION_FAILED"

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ServiceUnavailableError) as exc_info:
            await _auth_client(handler).verify("token=abc", None)
        assert exc_info.value.code == "AUTH_SERVICE_UNAVAILABLE"


def _media_client(handler):
    return ImageKitClient(
        private_key="private_test",
        upload_url="https://upload.test/api/v1/files/upload",
        api_url="https://api.test/v1",
        folder="/products",
        timeout=1,
        transport=httpx.MockTransport(handler),
    )


class TestImageKitClient:
    @pytest.mark.asyncio
    async def test_upload_returns_host_payload(self):
        def handler(request):
            assert request.headers["authorization"].startswith("Basic ")
            assert b'name="folder"' in request.content
            return httpx.Response(200, json={"fileId": "f1", "url": "https://cdn.test/f1.jpg", "name": "a.jpg"})

        result = await _media_client(handler).upload(b"jpeg", "a.jpg", "image/jpeg")
        assert result["fileId"] == "f1"

    @pytest.mark.asyncio
    async def test_upload_rejected(self):
        client = _media_client(lambda request: httpx.Response(400, json={"message": "bad file"}))
        with pytest.raises(MediaHostError) as exc_info:
            await client.upload(b"jpeg", "a.jpg", "image/jpeg")
        assert exc_info.value.code == "IMAGEKIT_UPLOAD_ERROR"

    @pytest.mark.asyncio
    async def test_delete_targets_file_resource(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            return httpx.Response(204)

        await _media_client(handler).delete("f1")
        assert calls == [("DELETE", "/v1/files/f1")]

    @pytest.mark.asyncio
    async def test_delete_failure(self):
        client = _media_client(lambda request: httpx.Response(404, json={"message": "missing"}))
        with pytest.raises(MediaHostError) as exc_info:
            await client.delete("f1")
        assert exc_info.value.code == "IMAGEKIT_DELETE_ERROR"

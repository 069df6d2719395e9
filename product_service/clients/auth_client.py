import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from product_service.core.config import settings
from product_service.core.errors import ServiceUnavailableError, UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str


class AuthClient:
    """Verifies the caller's session against the auth service."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or settings.AUTH_SERVICE_URL).rstrip("/")
        self.timeout = timeout or settings.AUTH_TIMEOUT_SECONDS
        self.transport = transport

    async def verify(self, cookie: Optional[str], authorization: Optional[str]) -> CurrentUser:
        if not cookie and not authorization:
            raise UnauthorizedError("Authentication credentials missing", code="MISSING_CREDENTIALS")

        headers = {}
        if cookie:
            headers["Cookie"] = cookie
        if authorization:
            headers["Authorization"] = authorization

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(f"{self.base_url}/api/auth/verify", headers=headers)
            except httpx.RequestError as e:
                logger.error("Auth service unreachable.", extra={"error": str(e)})
                raise ServiceUnavailableError("Auth service unavailable", code="AUTH_SERVICE_UNAVAILABLE")

        if response.status_code in (401, 403):
            raise UnauthorizedError("Authentication failed", code="AUTHENTICATION_FAILED")
        if response.status_code >= 400:
            logger.warning("Auth service returned an error.", extra={"status_code": response.status_code})
            raise ServiceUnavailableError("Auth service error", code="AUTH_SERVICE_UNAVAILABLE")

        body = response.json()
        user = body.get("data", body) if isinstance(body, dict) else {}
        user = user.get("user", user)
        user_id = user.get("id") or user.get("userId") or user.get("_id")
        role = user.get("role")
        if not user_id or not role:
            raise UnauthorizedError("Authentication failed", code="AUTHENTICATION_FAILED")
        return CurrentUser(id=str(user_id), role=str(role))

import logging
from typing import Optional

from fastapi import Depends, Header, Request

from product_service.clients.auth_client import CurrentUser
from product_service.container import ServiceContainer
from product_service.core.errors import ForbiddenError, ServiceUnavailableError, ValidationError
from product_service.schemas.common import to_object_id

logger = logging.getLogger(__name__)


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise ServiceUnavailableError("Service is starting up", code="SERVICE_NOT_READY")
    return container


def get_product_service(container: ServiceContainer = Depends(get_container)):
    return container.products


def get_variant_service(container: ServiceContainer = Depends(get_container)):
    return container.variants


def get_inventory_service(container: ServiceContainer = Depends(get_container)):
    return container.inventory


def get_category_service(container: ServiceContainer = Depends(get_container)):
    return container.categories


def get_review_service(container: ServiceContainer = Depends(get_container)):
    return container.reviews


def get_cart_service(container: ServiceContainer = Depends(get_container)):
    return container.carts


def get_order_service(container: ServiceContainer = Depends(get_container)):
    return container.orders


def get_storefront_service(container: ServiceContainer = Depends(get_container)):
    return container.storefront


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    container: ServiceContainer = Depends(get_container),
) -> CurrentUser:
    """Resolve the caller through the auth service using the request's cookie and bearer token."""
    user = await container.auth_client.verify(request.headers.get("cookie"), authorization)
    logger.debug("Request authenticated.", extra={"user_id": user.id, "role": user.role})
    return user


def require_roles(*roles: str):
    allowed = frozenset(roles)

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise ForbiddenError(
                f"Role '{user.role}' is not allowed to perform this action",
                code="FORBIDDEN_ROLE",
                details={"allowedRoles": sorted(allowed)},
            )
        return user

    return dependency


def valid_id(value: str, field: str = "id") -> str:
    if to_object_id(value) is None:
        raise ValidationError(
            f"Invalid {field}",
            details=[{"field": field, "message": "must be a valid ObjectId", "value": value}],
        )
    return value


def path_id(id: str) -> str:
    return valid_id(id, "id")


def optional_id(value: Optional[str], field: str) -> Optional[str]:
    """Query-string id filters: absent is fine, malformed is a 400."""
    if value is None or value == "":
        return None
    return valid_id(value, field)

"""Guard helpers shared by the entity services.

Every mutating service method runs inside ``service_operation``: a span named
after the operation, and error classification on the way out. Already
classified ``ApiError`` instances propagate unchanged; anything else becomes an
``InternalError`` carrying the operation's code and the original message.
"""
import functools
import logging
from typing import Optional

from opentelemetry.trace import Status, StatusCode

from product_service.clients.auth_client import CurrentUser
from product_service.core.errors import ForbiddenError, UnauthorizedError, ValidationError, convert_error

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = frozenset({"admin"})


def require_actor(actor: Optional[CurrentUser]) -> CurrentUser:
    if actor is None:
        raise UnauthorizedError("Authentication required", code="UNAUTHORIZED")
    return actor


def is_privileged(actor: CurrentUser) -> bool:
    return actor.role in PRIVILEGED_ROLES


def assert_can_manage(
    actor: CurrentUser,
    product: dict,
    action: str,
    not_owner_code: str = "FORBIDDEN_NOT_OWNER",
    not_owner_message: str = "You do not own this product",
):
    """Sellers must own the root product; privileged roles bypass; everyone else is refused."""
    if actor.role == "seller":
        if str(product.get("sellerId")) != actor.id:
            raise ForbiddenError(not_owner_message, code=not_owner_code)
    elif not is_privileged(actor):
        raise ForbiddenError(f"Insufficient permissions to {action}", code="FORBIDDEN")


def assert_product_active(product: dict, action: str):
    if product.get("isActive") is False:
        raise ValidationError(f"Cannot {action}: product is inactive", code="PRODUCT_INACTIVE")


def service_operation(span_name: str, error_code: str, error_message: str):
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            with self.tracer.start_as_current_span(span_name) as span:
                try:
                    result = await func(self, *args, **kwargs)
                except Exception as e:
                    error = convert_error(e, code=error_code, message=error_message)
                    span.set_attribute("app.error.code", error.code)
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, error.message))
                    if error.status_code >= 500:
                        logger.error(
                            f"{error_message}.",
                            extra={"operation": span_name, "error_code": error.code, "error": str(e)},
                            exc_info=True,
                        )
                    else:
                        logger.warning(
                            "Operation rejected.",
                            extra={"operation": span_name, "error_code": error.code, "error": error.message},
                        )
                    if error is e:
                        raise
                    raise error from e
                span.set_status(Status(StatusCode.OK))
                return result
        return wrapper
    return decorator

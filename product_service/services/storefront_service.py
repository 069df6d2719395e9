import math
from typing import Dict

from opentelemetry import trace

from product_service.repositories.storefront_repository import StorefrontRepository
from product_service.services.base import service_operation

OPTION_PREFIX = "option_"


def extract_option_filters(params: Dict[str, str]) -> Dict[str, str]:
    """``option_Color=Red`` -> ``{"Color": "Red"}``; empty names or values are skipped."""
    options = {}
    for key, value in params.items():
        if key.startswith(OPTION_PREFIX) and value:
            name = key[len(OPTION_PREFIX):]
            if name:
                options[name] = value
    return options


class StorefrontService:
    def __init__(self, storefront: StorefrontRepository):
        self.storefront = storefront
        self.tracer = trace.get_tracer("product_service.services.StorefrontService", "1.0.0")

    @service_operation("service.storefront.search", "STOREFRONT_SEARCH_FAILED", "Failed to search products")
    async def search(self, filters: dict, options: Dict[str, str], sort: dict, page: int, limit: int) -> dict:
        result = await self.storefront.search(filters, options, sort, page, limit)
        total = result["total"]
        total_pages = math.ceil(total / limit) if limit else 0
        return {
            "products": result["items"],
            "meta": {
                "totalProducts": total,
                "currentPage": page,
                "totalPages": total_pages,
                "hasNextPage": page < total_pages,
                "hasPrevPage": page > 1,
            },
        }

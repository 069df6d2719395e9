from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request

from product_service.api.deps import get_storefront_service, optional_id
from product_service.api.responses import success
from product_service.services.storefront_service import StorefrontService, extract_option_filters

router = APIRouter()


@router.get("/search")
async def search_storefront(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    seller_id: Optional[str] = Query(None, alias="sellerId"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    sort_by: Literal["relevance", "price", "createdAt"] = Query("createdAt", alias="sortBy"),
    sort_order: Optional[Literal["asc", "desc"]] = Query(None, alias="sortOrder"),
    service: StorefrontService = Depends(get_storefront_service),
):
    """Public catalog search over sellable variant/inventory rows."""
    filters = {
        "search": search,
        "category": category,
        "brand": brand,
        "sellerId": optional_id(seller_id, "sellerId"),
        "minPrice": min_price,
        "maxPrice": max_price,
    }
    options = extract_option_filters(dict(request.query_params))
    result = await service.search(filters, options, {"sortBy": sort_by, "sortOrder": sort_order}, page, limit)
    return success(result, "Products fetched successfully")

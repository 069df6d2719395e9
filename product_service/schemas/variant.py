from typing import Annotated, Dict, List, Optional

from pydantic import AfterValidator, Field

from product_service.models import Variant
from product_service.schemas.common import CamelModel, Image, Price, PyObjectId


def _clean_options(value: Dict[str, str]) -> Dict[str, str]:
    cleaned = {}
    for key, option in value.items():
        key, option = key.strip(), option.strip()
        if not key or not option:
            raise ValueError("options must map non-empty names to non-empty values")
        cleaned[key] = option
    return cleaned


Options = Annotated[Dict[str, str], AfterValidator(_clean_options)]
Sku = Annotated[str, Field(min_length=1, max_length=Variant.SKU_MAX_LENGTH)]
BaseUnit = Annotated[str, Field(min_length=1, max_length=30)]


class VariantCreate(CamelModel):
    product_id: PyObjectId
    sku: Optional[Sku] = None
    options: Options = {}
    base_unit: BaseUnit = "piece"
    price: Price
    variant_images: List[Image] = []
    is_active: bool = True


class VariantUpdate(CamelModel):
    sku: Optional[Sku] = None
    options: Optional[Options] = None
    base_unit: Optional[BaseUnit] = None
    price: Optional[Price] = None
    variant_images: Optional[List[Image]] = None
    is_active: Optional[bool] = None

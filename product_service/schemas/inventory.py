from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, model_validator

from product_service.models import InventoryItem
from product_service.schemas.common import CamelModel, CurrencyCode, PyObjectId

InventoryStatus = Literal[InventoryItem.STATUSES]


class PricePerBaseUnit(CamelModel):
    amount: float = Field(ge=0)
    currency: CurrencyCode = InventoryItem.DEFAULT_CURRENCY


class ManufacturingDetails(CamelModel):
    mfg_date: Optional[datetime] = None
    exp_date: Optional[datetime] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.mfg_date and self.exp_date and self.exp_date < self.mfg_date:
            raise ValueError("expDate must not be before mfgDate")
        return self


class InventoryItemCreate(CamelModel):
    variant_id: PyObjectId
    batch_number: Optional[str] = Field(default=None, min_length=1, max_length=InventoryItem.BATCH_NUMBER_MAX_LENGTH)
    stock_in_base_units: int = Field(ge=0)
    price_per_base_unit: PricePerBaseUnit
    status: InventoryStatus = InventoryItem.DEFAULT_STATUS
    manufacturing_details: ManufacturingDetails = ManufacturingDetails()
    hsn_code: Optional[str] = Field(default=None, max_length=InventoryItem.HSN_CODE_MAX_LENGTH)
    gst_percentage: float = Field(default=InventoryItem.DEFAULT_GST_PERCENTAGE, ge=0, le=100)
    is_active: bool = True


class InventoryItemUpdate(CamelModel):
    batch_number: Optional[str] = Field(default=None, min_length=1, max_length=InventoryItem.BATCH_NUMBER_MAX_LENGTH)
    stock_in_base_units: Optional[int] = Field(default=None, ge=0)
    price_per_base_unit: Optional[PricePerBaseUnit] = None
    status: Optional[InventoryStatus] = None
    manufacturing_details: Optional[ManufacturingDetails] = None
    hsn_code: Optional[str] = Field(default=None, max_length=InventoryItem.HSN_CODE_MAX_LENGTH)
    gst_percentage: Optional[float] = Field(default=None, ge=0, le=100)

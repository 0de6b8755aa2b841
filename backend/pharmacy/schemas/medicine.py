from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal


class MedicineCreate(BaseModel):
    name: str
    sku: Optional[str] = None
    unit_price: Decimal
    unit_label: Optional[str] = None
    stock_quantity: int = 0


class MedicineUpdate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    unit_price: Optional[Decimal] = None
    unit_label: Optional[str] = None


class StockAdjustment(BaseModel):
    """Exactly one of delta / absolute."""
    delta: Optional[int] = None
    absolute: Optional[int] = None


class MedicineRecord(BaseModel):
    storage_id: str
    sequence_id: int
    name: str
    sku: Optional[str] = None
    unit_price: Decimal
    unit_label: str
    stock_quantity: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

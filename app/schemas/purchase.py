from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.schemas.common import as_naive_utc, not_null


class PurchaseCreate(BaseModel):
    contact_id: str
    item: str
    unit_amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    quantity: int = Field(default=1, gt=0)
    purchase_date: Optional[datetime] = None

    @field_validator("item")
    @classmethod
    def item_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Item is required")
        return v.strip()

    @field_validator("purchase_date")
    @classmethod
    def utc_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class PurchaseUpdate(BaseModel):
    item: Optional[str] = None
    unit_amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    quantity: Optional[int] = Field(default=None, gt=0)
    purchase_date: Optional[datetime] = None

    @field_validator("item")
    @classmethod
    def item_required(cls, v: Optional[str]) -> str:
        if v is None or not v.strip():
            raise ValueError("Item is required")
        return v.strip()

    @field_validator("unit_amount", "quantity", "purchase_date")
    @classmethod
    def value_required(cls, v, info):
        return not_null(v, info.field_name)

    @field_validator("purchase_date")
    @classmethod
    def utc_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class PurchaseResponse(BaseModel):
    id: str
    company_id: str
    contact_id: str
    created_by: str
    item: str
    unit_amount: Decimal
    quantity: int
    amount: Decimal
    purchase_date: datetime
    created_at: datetime

    class Config:
        from_attributes = True

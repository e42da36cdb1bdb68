from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional
from app.models.voucher import DiscountType, VoucherStatus
from app.schemas.common import as_naive_utc, not_null


class VoucherRuleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    min_purchase_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(default=None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("valid_from", "valid_until")
    @classmethod
    def utc_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class VoucherRuleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    min_purchase_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(default=None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: Optional[str]) -> str:
        if v is None or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("discount_type", "discount_value", "is_active")
    @classmethod
    def value_required(cls, v, info):
        return not_null(v, info.field_name)

    @field_validator("valid_from", "valid_until")
    @classmethod
    def utc_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class VoucherRuleResponse(BaseModel):
    id: str
    company_id: str
    name: str
    description: Optional[str]
    discount_type: DiscountType
    discount_value: Decimal
    min_purchase_amount: Optional[Decimal]
    max_discount_amount: Optional[Decimal]
    valid_from: Optional[datetime]
    valid_until: Optional[datetime]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DiscountQuoteResponse(BaseModel):
    voucher_rule_id: str
    purchase_amount: Decimal
    discount: Decimal
    total_after_discount: Decimal


class VoucherIssue(BaseModel):
    contact_id: str
    voucher_rule_id: str


class VoucherResponse(BaseModel):
    id: str
    company_id: str
    contact_id: str
    voucher_rule_id: str
    code: str
    status: VoucherStatus
    issued_by: str
    issued_at: datetime
    redeemed_at: Optional[datetime]
    redeemed_by: Optional[str]

    class Config:
        from_attributes = True

from pydantic import BaseModel, EmailStr, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional


def _blank_to_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class ContactCreate(BaseModel):
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    assigned_user_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("email", "phone", "address", mode="before")
    @classmethod
    def empty_as_null(cls, v):
        return _blank_to_none(v)


class ContactUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    assigned_user_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: Optional[str]) -> str:
        if v is None or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("email", "phone", "address", mode="before")
    @classmethod
    def empty_as_null(cls, v):
        return _blank_to_none(v)


class ContactCapabilities(BaseModel):
    can_edit: bool
    can_delete: bool
    can_reassign: bool
    can_record_purchase: bool
    can_see_pii: bool


class ContactResponse(BaseModel):
    id: str
    company_id: str
    created_by: str
    assigned_user_id: Optional[str]
    name: str
    # Null unless the caller may see personal data
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    pii_visible: bool
    # Null means unavailable to the caller, not zero
    total_spend: Optional[Decimal]
    capabilities: ContactCapabilities
    created_at: datetime
    updated_at: datetime

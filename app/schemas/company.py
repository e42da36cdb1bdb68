from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Optional
from app.models.user import AppRole


class CompanyResponse(BaseModel):
    id: str
    name: str
    industry: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CompanyUpdate(BaseModel):
    name: Optional[str] = None
    industry: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            raise ValueError("Company name is required")
        return v.strip()


class CompanyUserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str]
    role: AppRole
    is_active: bool
    created_at: datetime

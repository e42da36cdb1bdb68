from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from datetime import datetime
from typing import Optional
from app.models.user import AppRole


class Token(BaseModel):
    access_token: str
    token_type: str


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    company_id: Optional[str] = None

    @field_validator("company_name", "full_name")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
        return v or None

    @model_validator(mode="after")
    def require_company(self):
        if not self.company_id and not self.company_name:
            raise ValueError("Either company_name or company_id is required")
        return self


class UserResponse(BaseModel):
    id: str
    company_id: str
    email: EmailStr
    full_name: Optional[str]
    role: AppRole
    is_active: bool
    created_at: datetime


class SignupResponse(BaseModel):
    user: UserResponse
    company_created: bool
    access_token: str
    token_type: str = "bearer"


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None

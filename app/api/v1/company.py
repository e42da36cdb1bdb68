from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.core.database import get_db
from app.core.policy import Caller
from app.api.v1.auth import get_caller
from app.models.user import AppRole, User
from app.schemas.company import CompanyResponse, CompanyUpdate, CompanyUserResponse
from app.services.company_service import CompanyService

router = APIRouter()


def _member_response(user: User, role: AppRole) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": role,
        "is_active": user.is_active,
        "created_at": user.created_at,
    }


@router.get("", response_model=CompanyResponse)
async def get_company(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Get the caller's company."""
    return await CompanyService(db).get_company(caller)


@router.patch("", response_model=CompanyResponse)
async def update_company(
    company_update: CompanyUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Rename the company or change its industry (admin only)."""
    changes = company_update.model_dump(exclude_unset=True)
    return await CompanyService(db).update_company(caller, changes)


@router.get("/users", response_model=List[CompanyUserResponse])
async def list_company_users(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """List members of the caller's company with their roles."""
    members = await CompanyService(db).list_users(caller)
    return [_member_response(user, role) for user, role in members]


@router.post("/users/{user_id}/admin", response_model=CompanyUserResponse)
async def grant_admin(
    user_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Promote a member to admin (admin only)."""
    user = await CompanyService(db).grant_admin(caller, user_id)
    return _member_response(user, AppRole.ADMIN)


@router.delete("/users/{user_id}/admin", response_model=CompanyUserResponse)
async def revoke_admin(
    user_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Demote an admin to a plain user (admin only)."""
    user = await CompanyService(db).revoke_admin(caller, user_id)
    return _member_response(user, AppRole.USER)

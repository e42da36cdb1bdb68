from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
from datetime import datetime
import logging

from app.core.database import get_db
from app.core.exceptions import Unauthenticated
from app.core.policy import Caller
from app.core.security import create_access_token, decode_access_token, verify_password
from app.models.user import User
from app.schemas.auth import ProfileUpdate, SignupRequest, SignupResponse, Token, UserResponse
from app.services.company_service import CompanyService
from app.services.identity_service import IdentityService

logger = logging.getLogger(__name__)

router = APIRouter()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Authenticate the bearer token and load its profile."""
    if not token:
        raise Unauthenticated()

    payload = decode_access_token(token)
    if payload is None:
        raise Unauthenticated()

    return await IdentityService(db).load_principal(payload.get("sub"))


async def get_caller(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Caller:
    """Resolve the authenticated user to company and role."""
    return await IdentityService(db).caller_for(current_user)


def _issue_token(user: User, caller_role: str) -> str:
    return create_access_token(
        data={"sub": user.id, "email": user.email, "company_id": user.company_id, "role": caller_role}
    )


def _user_response(user: User, caller: Caller) -> dict:
    return {
        "id": user.id,
        "company_id": user.company_id,
        "email": user.email,
        "full_name": user.full_name,
        "role": caller.role,
        "is_active": user.is_active,
        "created_at": user.created_at,
    }


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    signup_data: SignupRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a user.

    Creates the company when no company with that name exists (the user
    becomes its admin); otherwise joins the existing company as a user.
    """
    user, role, created = await CompanyService(db).register_user(
        email=signup_data.email,
        password=signup_data.password,
        full_name=signup_data.full_name,
        company_name=signup_data.company_name,
        company_id=signup_data.company_id,
    )
    caller = Caller(user_id=user.id, company_id=user.company_id, role=role, email=user.email)

    return {
        "user": _user_response(user, caller),
        "company_created": created,
        "access_token": _issue_token(user, role.value),
        "token_type": "bearer",
    }


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    """Exchange email and password for an access token."""
    result = await db.execute(select(User).where(User.email == form_data.username.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login for {form_data.username}")
        raise Unauthenticated("Incorrect email or password")
    if not user.is_active:
        raise Unauthenticated("User account is inactive")

    caller = await IdentityService(db).caller_for(user)

    user.last_login_at = datetime.utcnow()
    await db.commit()

    return {"access_token": _issue_token(user, caller.role.value), "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
async def read_me(
    current_user: User = Depends(get_current_user),
    caller: Caller = Depends(get_caller)
):
    """Get the authenticated user's profile and role."""
    return _user_response(current_user, caller)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    profile_update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Update the authenticated user's own profile; company is immutable."""
    update_data = profile_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(current_user, field, value)
    current_user.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(current_user)

    return _user_response(current_user, caller)

"""
Tenant & Identity Resolution

Maps an authenticated principal (the ``sub`` of an access token) to the
``Caller`` every policy decision is made against.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import Unauthenticated
from app.core.policy import Caller
from app.models.user import User, UserRoleAssignment, AppRole

logger = logging.getLogger(__name__)


class IdentityService:
    """Resolves principals to users, roles and companies."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_principal(self, principal_id: Optional[str]) -> User:
        if not principal_id:
            raise Unauthenticated()

        user = await self.db.get(User, principal_id)
        if user is None:
            logger.warning(f"Token subject {principal_id} has no profile")
            raise Unauthenticated()
        if not user.is_active:
            raise Unauthenticated("User account is inactive")
        return user

    async def get_role(self, user_id: str) -> AppRole:
        result = await self.db.execute(
            select(UserRoleAssignment.id).where(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.role == AppRole.ADMIN,
            )
        )
        return AppRole.ADMIN if result.first() else AppRole.USER

    async def caller_for(self, user: User) -> Caller:
        role = await self.get_role(user.id)
        return Caller(
            user_id=user.id,
            company_id=user.company_id,
            role=role,
            email=user.email,
        )

    async def resolve(self, principal_id: Optional[str]) -> Caller:
        """Resolve a principal to its caller context or raise Unauthenticated."""
        user = await self.load_principal(principal_id)
        return await self.caller_for(user)

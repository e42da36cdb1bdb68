"""
Company Service

Signup (company resolution and first-admin assignment), company settings and
company user/role management.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import Conflict, NotFound, PermissionDenied, ValidationFailed
from app.core.policy import Caller, Entity, Operation, can_read_company_scoped, can_write, ensure, is_admin
from app.core.security import get_password_hash
from app.models.company import Company
from app.models.user import User, UserRoleAssignment, AppRole

logger = logging.getLogger(__name__)


class CompanyService:
    """Service for companies, their members and member roles."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # -------------------------------------------------------------------------
    # Signup
    # -------------------------------------------------------------------------

    async def _find_company_by_name(self, name: str) -> Optional[Company]:
        result = await self.db.execute(
            select(Company).where(func.lower(Company.name) == name.lower()).limit(1)
        )
        return result.scalar_one_or_none()

    async def resolve_signup_company(
        self,
        company_name: Optional[str],
        company_id: Optional[str] = None
    ) -> Tuple[Company, bool]:
        """
        Find or create the company a new user belongs to.

        Returns:
            (company, created) where ``created`` is True only when this call
            inserted the company row.
        """
        if company_id:
            company = await self.db.get(Company, company_id)
            if company is None:
                raise NotFound("Company")
            return company, False

        if not company_name or not company_name.strip():
            raise ValidationFailed({"company_name": "Company name is required"})
        name = company_name.strip()
        existing = await self._find_company_by_name(name)
        if existing:
            return existing, False

        company = Company(name=name)
        self.db.add(company)
        try:
            await self.db.flush()
        except IntegrityError:
            # A concurrent signup committed the same name first
            await self.db.rollback()
            existing = await self._find_company_by_name(name)
            if existing is None:
                raise
            logger.info(f"Company '{name}' created concurrently; joining {existing.id}")
            return existing, False

        logger.info(f"Created company {company.id} ('{name}')")
        return company, True

    async def register_user(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        company_name: Optional[str] = None,
        company_id: Optional[str] = None
    ) -> Tuple[User, AppRole, bool]:
        """
        Create a profile and its single role row.

        The first user of a newly created company becomes admin; anyone
        joining an existing company starts as a plain user.
        """
        email = email.lower()
        result = await self.db.execute(select(User.id).where(User.email == email))
        if result.first():
            raise Conflict("Email already registered")

        company, created = await self.resolve_signup_company(company_name, company_id)
        role = AppRole.ADMIN if created else AppRole.USER

        user = User(
            company_id=company.id,
            email=email,
            hashed_password=get_password_hash(password),
            full_name=full_name,
        )
        self.db.add(user)
        await self.db.flush()
        self.db.add(UserRoleAssignment(user_id=user.id, role=role))

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Email already registered")

        await self.db.refresh(user)
        logger.info(f"Registered user {user.id} in company {user.company_id} as {role.value}")
        return user, role, created

    # -------------------------------------------------------------------------
    # Company
    # -------------------------------------------------------------------------

    async def get_company(self, caller: Caller) -> Company:
        company = await self.db.get(Company, caller.company_id)
        if company is None:
            raise NotFound("Company")
        return company

    async def update_company(self, caller: Caller, changes: dict) -> Company:
        company = await self.get_company(caller)
        ensure(is_admin(caller), "Only admins can update the company")

        for field, value in changes.items():
            setattr(company, field, value)
        company.updated_at = datetime.utcnow()

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("A company with this name already exists")

        await self.db.refresh(company)
        logger.info(f"Company {company.id} updated by {caller.user_id}: {sorted(changes)}")
        return company

    # -------------------------------------------------------------------------
    # Members and roles
    # -------------------------------------------------------------------------

    async def list_users(self, caller: Caller) -> List[Tuple[User, AppRole]]:
        users_result = await self.db.execute(
            select(User)
            .where(User.company_id == caller.company_id)
            .order_by(User.full_name.asc(), User.email.asc())
        )
        users = users_result.scalars().all()

        admin_ids = await self.admin_ids(caller.company_id)
        return [
            (user, AppRole.ADMIN if user.id in admin_ids else AppRole.USER)
            for user in users
        ]

    async def admin_ids(self, company_id: str) -> set:
        result = await self.db.execute(
            select(UserRoleAssignment.user_id)
            .join(User, User.id == UserRoleAssignment.user_id)
            .where(
                User.company_id == company_id,
                UserRoleAssignment.role == AppRole.ADMIN,
            )
        )
        return set(result.scalars().all())

    async def get_member(self, caller: Caller, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if user is None or not can_read_company_scoped(user, caller):
            raise NotFound("User")
        return user

    async def grant_admin(self, caller: Caller, user_id: str) -> User:
        """Give a member the admin role; granting twice is a no-op."""
        user = await self.get_member(caller, user_id)
        ensure(
            can_write(Entity.PROFILE_ROLE, caller, Operation.INSERT, user),
            "Only admins can change roles"
        )

        if user.id in await self.admin_ids(caller.company_id):
            return user

        self.db.add(UserRoleAssignment(user_id=user.id, role=AppRole.ADMIN))
        try:
            await self.db.commit()
        except IntegrityError:
            # Granted concurrently
            await self.db.rollback()
            await self.db.refresh(user)

        logger.info(f"User {user_id} promoted to admin by {caller.user_id}")
        return user

    async def revoke_admin(self, caller: Caller, user_id: str) -> User:
        user = await self.get_member(caller, user_id)
        ensure(
            can_write(Entity.PROFILE_ROLE, caller, Operation.DELETE, user),
            "Only admins can change roles"
        )
        if user.id == caller.user_id:
            raise PermissionDenied("Admins cannot revoke their own admin role")

        result = await self.db.execute(
            select(UserRoleAssignment).where(
                UserRoleAssignment.user_id == user.id,
                UserRoleAssignment.role == AppRole.ADMIN,
            )
        )
        assignment = result.scalar_one_or_none()
        if assignment is not None:
            await self.db.delete(assignment)
            await self.db.commit()
            logger.info(f"Admin role revoked from {user_id} by {caller.user_id}")
        return user

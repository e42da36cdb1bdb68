"""
Tenant CRM Test Configuration

Provides shared fixtures for async testing with:
- In-memory SQLite database
- Test client with async support
- Authenticated user fixtures (admin, two salesworkers, a foreign admin)
- Sample data factories for contacts, purchases, voucher rules and vouchers
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ENABLE_STRUCTURED_LOGGING", "false")

from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional
import uuid

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.policy import Caller
from app.core.security import get_password_hash, create_access_token
from app.main import app
from app.models.company import Company
from app.models.contact import Contact
from app.models.purchase import Purchase, compute_total
from app.models.user import User, UserRoleAssignment, AppRole
from app.models.voucher import VoucherRule, Voucher, DiscountType, VoucherStatus


# Test database URL - SQLite in-memory with async support
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an async engine for testing with in-memory SQLite."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# -----------------------------------------------------------------------------
# Data Factories
# -----------------------------------------------------------------------------

class CompanyFactory:
    """Factory for creating test companies."""

    @staticmethod
    async def create(db: AsyncSession, name: str = None) -> Company:
        company = Company(
            id=str(uuid.uuid4()),
            name=name or f"Company {uuid.uuid4().hex[:6].upper()}",
        )
        db.add(company)
        await db.commit()
        await db.refresh(company)
        return company


class UserFactory:
    """Factory for creating test users with their role row."""

    @staticmethod
    async def create(
        db: AsyncSession,
        company_id: str,
        email: str = None,
        role: AppRole = AppRole.USER,
        password: str = "testpassword123",
        full_name: str = None,
        is_active: bool = True
    ) -> User:
        user = User(
            id=str(uuid.uuid4()),
            company_id=company_id,
            email=email or f"user-{uuid.uuid4().hex[:8]}@test.com",
            hashed_password=get_password_hash(password),
            full_name=full_name or f"Test {role.value.title()}",
            is_active=is_active,
        )
        db.add(user)
        await db.flush()
        db.add(UserRoleAssignment(user_id=user.id, role=role))
        await db.commit()
        await db.refresh(user)
        return user


class ContactFactory:
    """Factory for creating test contacts."""

    @staticmethod
    async def create(
        db: AsyncSession,
        company_id: str,
        created_by: str,
        assigned_user_id: Optional[str] = None,
        name: str = "Test Contact",
        email: str = "contact@example.com",
        phone: str = "555-0100",
        address: str = "1 Test Street",
        created_at: datetime = None
    ) -> Contact:
        contact = Contact(
            id=str(uuid.uuid4()),
            company_id=company_id,
            created_by=created_by,
            assigned_user_id=assigned_user_id,
            name=name,
            email=email,
            phone=phone,
            address=address,
            created_at=created_at or datetime.utcnow(),
        )
        db.add(contact)
        await db.commit()
        await db.refresh(contact)
        return contact


class PurchaseFactory:
    """Factory for creating test purchases."""

    @staticmethod
    async def create(
        db: AsyncSession,
        contact: Contact,
        created_by: str,
        item: str = "Test Item",
        unit_amount: Decimal = Decimal("100.00"),
        quantity: int = 1,
        purchase_date: datetime = None
    ) -> Purchase:
        purchase = Purchase(
            id=str(uuid.uuid4()),
            company_id=contact.company_id,
            contact_id=contact.id,
            created_by=created_by,
            item=item,
            unit_amount=unit_amount,
            quantity=quantity,
            amount=compute_total(unit_amount, quantity),
            purchase_date=purchase_date or datetime.utcnow(),
        )
        db.add(purchase)
        await db.commit()
        await db.refresh(purchase)
        return purchase


class VoucherRuleFactory:
    """Factory for creating test voucher rules."""

    @staticmethod
    async def create(
        db: AsyncSession,
        company_id: str,
        name: str = "Ten Percent",
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        discount_value: Decimal = Decimal("10.00"),
        min_purchase_amount: Decimal = None,
        max_discount_amount: Decimal = None,
        valid_from: datetime = None,
        valid_until: datetime = None,
        is_active: bool = True
    ) -> VoucherRule:
        rule = VoucherRule(
            id=str(uuid.uuid4()),
            company_id=company_id,
            name=name,
            discount_type=discount_type,
            discount_value=discount_value,
            min_purchase_amount=min_purchase_amount,
            max_discount_amount=max_discount_amount,
            valid_from=valid_from,
            valid_until=valid_until,
            is_active=is_active,
        )
        db.add(rule)
        await db.commit()
        await db.refresh(rule)
        return rule


class VoucherFactory:
    """Factory for creating test vouchers."""

    @staticmethod
    async def create(
        db: AsyncSession,
        contact: Contact,
        rule: VoucherRule,
        issued_by: str,
        code: str = None,
        status: VoucherStatus = VoucherStatus.ISSUED
    ) -> Voucher:
        voucher = Voucher(
            id=str(uuid.uuid4()),
            company_id=contact.company_id,
            contact_id=contact.id,
            voucher_rule_id=rule.id,
            code=code or f"V-{uuid.uuid4().hex[:10].upper()}",
            status=status,
            issued_by=issued_by,
            issued_at=datetime.utcnow(),
        )
        db.add(voucher)
        await db.commit()
        await db.refresh(voucher)
        return voucher


def caller_for(user: User, role: AppRole) -> Caller:
    """Build a caller context for direct service calls."""
    return Caller(user_id=user.id, company_id=user.company_id, role=role, email=user.email)


def auth_headers_for(user: User) -> Dict[str, str]:
    token = create_access_token(data={"sub": user.id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


# -----------------------------------------------------------------------------
# Pre-configured Test Data Fixtures
# -----------------------------------------------------------------------------

@pytest_asyncio.fixture
async def test_company(db_session: AsyncSession) -> Company:
    """Create a test company."""
    return await CompanyFactory.create(db_session, name="Acme Sales")


@pytest_asyncio.fixture
async def other_company(db_session: AsyncSession) -> Company:
    """Create a second, unrelated company."""
    return await CompanyFactory.create(db_session, name="Globex")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession, test_company: Company) -> User:
    """Create an admin test user."""
    return await UserFactory.create(
        db_session,
        company_id=test_company.id,
        email="admin@test.com",
        role=AppRole.ADMIN,
        full_name="Ada Admin"
    )


@pytest_asyncio.fixture
async def sales_user(db_session: AsyncSession, test_company: Company) -> User:
    """Create a salesworker test user."""
    return await UserFactory.create(
        db_session,
        company_id=test_company.id,
        email="sales@test.com",
        role=AppRole.USER,
        full_name="Sam Sales"
    )


@pytest_asyncio.fixture
async def other_sales_user(db_session: AsyncSession, test_company: Company) -> User:
    """Create a second salesworker in the same company."""
    return await UserFactory.create(
        db_session,
        company_id=test_company.id,
        email="sales2@test.com",
        role=AppRole.USER,
        full_name="Pat Peer"
    )


@pytest_asyncio.fixture
async def foreign_admin(db_session: AsyncSession, other_company: Company) -> User:
    """Create an admin of another company."""
    return await UserFactory.create(
        db_session,
        company_id=other_company.id,
        email="admin@globex.com",
        role=AppRole.ADMIN,
        full_name="Foreign Admin"
    )


@pytest_asyncio.fixture
async def auth_headers_admin(admin_user: User) -> Dict[str, str]:
    """Get auth headers for admin user."""
    return auth_headers_for(admin_user)


@pytest_asyncio.fixture
async def auth_headers_sales(sales_user: User) -> Dict[str, str]:
    """Get auth headers for the salesworker."""
    return auth_headers_for(sales_user)


@pytest_asyncio.fixture
async def auth_headers_other_sales(other_sales_user: User) -> Dict[str, str]:
    return auth_headers_for(other_sales_user)


@pytest_asyncio.fixture
async def auth_headers_foreign(foreign_admin: User) -> Dict[str, str]:
    return auth_headers_for(foreign_admin)


@pytest_asyncio.fixture
async def sales_contact(db_session: AsyncSession, test_company: Company, sales_user: User) -> Contact:
    """A contact created by and assigned to the salesworker."""
    return await ContactFactory.create(
        db_session,
        company_id=test_company.id,
        created_by=sales_user.id,
        assigned_user_id=sales_user.id,
        name="Jane Customer",
        email="jane@example.com",
        phone="555-0101"
    )


@pytest_asyncio.fixture
async def active_rule(db_session: AsyncSession, test_company: Company) -> VoucherRule:
    return await VoucherRuleFactory.create(db_session, company_id=test_company.id)


# Export factories for use in tests
__all__ = [
    "CompanyFactory",
    "UserFactory",
    "ContactFactory",
    "PurchaseFactory",
    "VoucherRuleFactory",
    "VoucherFactory",
    "caller_for",
    "auth_headers_for",
]

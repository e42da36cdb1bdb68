"""
Tests for Authentication, Signup and Identity Resolution

Tests cover:
- Password hashing and JWT token handling
- Signup creating a company (first user becomes admin)
- Signup joining an existing company (case-insensitive, as plain user)
- Concurrent company creation resolving to a join
- Login, /me and profile updates
- Principal resolution for missing and inactive users
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import Unauthenticated
from app.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    decode_access_token
)
from app.models.company import Company
from app.models.user import User, UserRoleAssignment, AppRole
from app.services.company_service import CompanyService
from app.services.identity_service import IdentityService
from tests.conftest import CompanyFactory, UserFactory, auth_headers_for


# -----------------------------------------------------------------------------
# Password Hashing Tests
# -----------------------------------------------------------------------------

class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_password_hash_is_salted(self):
        password = "testpassword123"

        assert get_password_hash(password) != get_password_hash(password)

    def test_verify_password(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("testpassword123", hashed) is True
        assert verify_password("wrongpassword", hashed) is False
        assert verify_password("", hashed) is False


# -----------------------------------------------------------------------------
# JWT Token Tests
# -----------------------------------------------------------------------------

class TestJWTTokens:
    """Tests for JWT token creation and validation."""

    def test_token_round_trip(self):
        token = create_access_token({"sub": "user123", "email": "test@example.com"})

        payload = decode_access_token(token)
        assert payload["sub"] == "user123"
        assert payload["email"] == "test@example.com"
        assert payload["type"] == "access"

    def test_custom_expiry(self):
        token = create_access_token({"sub": "user123"}, expires_delta=timedelta(hours=1))

        payload = decode_access_token(token)
        assert payload["exp"] - payload["iat"] == 3600

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "user123"}, expires_delta=timedelta(seconds=-10))

        assert decode_access_token(token) is None

    def test_tampered_token_rejected(self):
        token = create_access_token({"sub": "user123"})

        assert decode_access_token(token[:-5] + "XXXXX") is None
        assert decode_access_token("invalid.token.here") is None


# -----------------------------------------------------------------------------
# Signup Tests
# -----------------------------------------------------------------------------

class TestSignup:
    """Tests for signup and company resolution."""

    @pytest.mark.asyncio
    async def test_signup_creates_company_and_admin(
        self,
        client: AsyncClient,
        db_session: AsyncSession
    ):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "Founder@NewCo.com",
                "password": "supersecret",
                "full_name": "Frankie Founder",
                "company_name": "NewCo"
            }
        )

        assert response.status_code == 201
        data = response.json()
        assert data["company_created"] is True
        assert data["user"]["role"] == "admin"
        assert data["user"]["email"] == "founder@newco.com"
        assert decode_access_token(data["access_token"])["sub"] == data["user"]["id"]

        result = await db_session.execute(
            select(UserRoleAssignment).where(UserRoleAssignment.user_id == data["user"]["id"])
        )
        roles = result.scalars().all()
        assert [r.role for r in roles] == [AppRole.ADMIN]

    @pytest.mark.asyncio
    async def test_signup_joins_existing_company_case_insensitively(
        self,
        client: AsyncClient,
        test_company: Company
    ):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "joiner@test.com",
                "password": "supersecret",
                "company_name": "  ACME sales "
            }
        )

        assert response.status_code == 201
        data = response.json()
        assert data["company_created"] is False
        assert data["user"]["role"] == "user"
        assert data["user"]["company_id"] == test_company.id

    @pytest.mark.asyncio
    async def test_signup_by_company_id(
        self,
        client: AsyncClient,
        test_company: Company
    ):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "invitee@test.com",
                "password": "supersecret",
                "company_id": test_company.id
            }
        )

        assert response.status_code == 201
        assert response.json()["user"]["company_id"] == test_company.id
        assert response.json()["user"]["role"] == "user"

    @pytest.mark.asyncio
    async def test_signup_unknown_company_id(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "lost@test.com",
                "password": "supersecret",
                "company_id": "does-not-exist"
            }
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_signup_requires_company(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "nocompany@test.com",
                "password": "supersecret",
                "company_name": "   "
            }
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_signup_duplicate_email(
        self,
        client: AsyncClient,
        sales_user: User
    ):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "SALES@test.com",
                "password": "supersecret",
                "company_name": "Anything"
            }
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_concurrent_company_creation_joins(
        self,
        db_session: AsyncSession,
        monkeypatch
    ):
        """A company committed between lookup and insert is joined, not duplicated."""
        existing = await CompanyFactory.create(db_session, name="Racy Corp")
        existing_id = existing.id

        service = CompanyService(db_session)
        real_find = service._find_company_by_name
        calls = []

        async def stale_first_lookup(name):
            calls.append(name)
            if len(calls) == 1:
                return None
            return await real_find(name)

        monkeypatch.setattr(service, "_find_company_by_name", stale_first_lookup)

        user, role, created = await service.register_user(
            email="second@racy.com",
            password="supersecret",
            company_name="racy corp",
        )

        assert created is False
        assert role == AppRole.USER
        assert user.company_id == existing_id
        assert len(calls) == 2

        result = await db_session.execute(select(Company))
        assert len(result.scalars().all()) == 1


# -----------------------------------------------------------------------------
# Login Endpoint Tests
# -----------------------------------------------------------------------------

class TestLoginEndpoint:
    """Tests for the login endpoint."""

    @pytest.mark.asyncio
    async def test_login_success(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_company: Company
    ):
        user = await UserFactory.create(
            db_session,
            company_id=test_company.id,
            email="logintest@test.com",
            password="correctpassword",
            role=AppRole.ADMIN
        )

        response = await client.post(
            "/api/v1/auth/login",
            data={"username": "LoginTest@test.com", "password": "correctpassword"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        payload = decode_access_token(data["access_token"])
        assert payload["sub"] == user.id
        assert payload["role"] == "admin"

    @pytest.mark.asyncio
    async def test_login_wrong_password(
        self,
        client: AsyncClient,
        sales_user: User
    ):
        response = await client.post(
            "/api/v1/auth/login",
            data={"username": "sales@test.com", "password": "wrongpassword"}
        )

        assert response.status_code == 401
        assert "Incorrect email or password" in response.json()["detail"]
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_login_user_not_found(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login",
            data={"username": "nonexistent@test.com", "password": "somepassword"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_inactive_user(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_company: Company
    ):
        await UserFactory.create(
            db_session,
            company_id=test_company.id,
            email="inactive@test.com",
            password="correctpassword",
            is_active=False
        )

        response = await client.post(
            "/api/v1/auth/login",
            data={"username": "inactive@test.com", "password": "correctpassword"}
        )

        assert response.status_code == 401
        assert "inactive" in response.json()["detail"].lower()


# -----------------------------------------------------------------------------
# Current User Endpoint Tests
# -----------------------------------------------------------------------------

class TestCurrentUserEndpoint:
    """Tests for the /me endpoint."""

    @pytest.mark.asyncio
    async def test_get_current_user(
        self,
        client: AsyncClient,
        auth_headers_admin: dict,
        admin_user: User
    ):
        response = await client.get("/api/v1/auth/me", headers=auth_headers_admin)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == admin_user.id
        assert data["company_id"] == admin_user.company_id
        assert data["role"] == "admin"

    @pytest.mark.asyncio
    async def test_role_comes_from_role_rows_not_token(
        self,
        client: AsyncClient,
        sales_user: User
    ):
        token = create_access_token(data={"sub": sales_user.id, "role": "admin"})

        response = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {token}"}
        )

        assert response.json()["role"] == "user"

    @pytest.mark.asyncio
    async def test_unauthenticated(self, client: AsyncClient):
        assert (await client.get("/api/v1/auth/me")).status_code == 401

        response = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": "Bearer invalid.token.here"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_deleted_user(self, client: AsyncClient):
        token = create_access_token(data={"sub": "ghost-user"})

        response = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_update_profile(
        self,
        client: AsyncClient,
        sales_user: User
    ):
        response = await client.patch(
            "/api/v1/auth/me",
            headers=auth_headers_for(sales_user),
            json={"full_name": "Samantha Sales"}
        )

        assert response.status_code == 200
        assert response.json()["full_name"] == "Samantha Sales"


# -----------------------------------------------------------------------------
# Identity Resolution Tests
# -----------------------------------------------------------------------------

class TestIdentityResolution:
    """Tests for resolving principals to callers."""

    @pytest.mark.asyncio
    async def test_resolve_admin(
        self,
        db_session: AsyncSession,
        admin_user: User
    ):
        caller = await IdentityService(db_session).resolve(admin_user.id)

        assert caller.user_id == admin_user.id
        assert caller.company_id == admin_user.company_id
        assert caller.is_admin is True

    @pytest.mark.asyncio
    async def test_resolve_user_without_admin_row(
        self,
        db_session: AsyncSession,
        sales_user: User
    ):
        caller = await IdentityService(db_session).resolve(sales_user.id)

        assert caller.role == AppRole.USER

    @pytest.mark.asyncio
    async def test_resolve_missing_principal(self, db_session: AsyncSession):
        with pytest.raises(Unauthenticated):
            await IdentityService(db_session).resolve(None)
        with pytest.raises(Unauthenticated):
            await IdentityService(db_session).resolve("unknown")

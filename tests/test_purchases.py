"""
Tests for Purchases

Tests cover:
- Recording purchases with computed totals
- Recording requires a visible contact
- Listing scoped through contact visibility, with filters
- Editing and deleting reserved for admins
"""
import pytest
from datetime import datetime
from decimal import Decimal
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.company import Company
from app.models.contact import Contact
from app.models.purchase import compute_total
from app.models.user import User
from tests.conftest import ContactFactory, PurchaseFactory


class TestComputeTotal:
    """Tests for the stored amount computation."""

    def test_unit_times_quantity(self):
        assert compute_total(Decimal("250.00"), 3) == Decimal("750.00")

    def test_rounds_half_up_to_cents(self):
        assert compute_total(Decimal("0.125"), 1) == Decimal("0.13")
        assert compute_total("19.99", 3) == Decimal("59.97")


# -----------------------------------------------------------------------------
# Record Tests
# -----------------------------------------------------------------------------

class TestRecordPurchase:
    """Tests for recording purchases."""

    @pytest.mark.asyncio
    async def test_record_purchase(
        self,
        client: AsyncClient,
        sales_contact: Contact,
        sales_user: User,
        auth_headers_sales: dict
    ):
        response = await client.post(
            "/api/v1/purchases",
            headers=auth_headers_sales,
            json={
                "contact_id": sales_contact.id,
                "item": "Annual plan",
                "unit_amount": "250.00",
                "quantity": 3
            }
        )

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["amount"]) == Decimal("750.00")
        assert data["created_by"] == sales_user.id
        assert data["company_id"] == sales_contact.company_id
        assert data["purchase_date"] is not None

    @pytest.mark.asyncio
    async def test_assignee_can_record(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_company: Company,
        admin_user: User,
        sales_user: User,
        auth_headers_sales: dict
    ):
        contact = await ContactFactory.create(
            db_session, company_id=test_company.id, created_by=admin_user.id,
            assigned_user_id=sales_user.id
        )

        response = await client.post(
            "/api/v1/purchases",
            headers=auth_headers_sales,
            json={"contact_id": contact.id, "item": "Add-on", "unit_amount": "9.50"}
        )

        assert response.status_code == 201
        assert response.json()["quantity"] == 1
        assert Decimal(response.json()["amount"]) == Decimal("9.50")

    @pytest.mark.asyncio
    async def test_invisible_contact_is_not_found(
        self,
        client: AsyncClient,
        sales_contact: Contact,
        auth_headers_other_sales: dict,
        auth_headers_foreign: dict
    ):
        payload = {"contact_id": sales_contact.id, "item": "Sneaky", "unit_amount": "1.00"}

        response = await client.post("/api/v1/purchases", headers=auth_headers_other_sales, json=payload)
        assert response.status_code == 404

        response = await client.post("/api/v1/purchases", headers=auth_headers_foreign, json=payload)
        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"item": "Free", "unit_amount": "0"},
        {"item": "Negative", "unit_amount": "-5.00"},
        {"item": "Zero qty", "unit_amount": "5.00", "quantity": 0},
        {"item": "  ", "unit_amount": "5.00"},
    ])
    async def test_invalid_values_rejected(
        self,
        client: AsyncClient,
        sales_contact: Contact,
        auth_headers_sales: dict,
        payload: dict
    ):
        response = await client.post(
            "/api/v1/purchases",
            headers=auth_headers_sales,
            json={"contact_id": sales_contact.id, **payload}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_offset_purchase_date_stored_as_utc(
        self,
        client: AsyncClient,
        sales_contact: Contact,
        auth_headers_sales: dict
    ):
        response = await client.post(
            "/api/v1/purchases",
            headers=auth_headers_sales,
            json={
                "contact_id": sales_contact.id,
                "item": "Late order",
                "unit_amount": "12.00",
                "purchase_date": "2026-03-05T23:30:00-02:00"
            }
        )

        assert response.status_code == 201
        assert response.json()["purchase_date"].startswith("2026-03-06T01:30:00")

        response = await client.get(
            "/api/v1/purchases",
            headers=auth_headers_sales,
            params={"from_date": "2026-03-06", "to_date": "2026-03-06"}
        )
        assert [p["item"] for p in response.json()] == ["Late order"]

    @pytest.mark.asyncio
    async def test_utc_suffixed_purchase_date(
        self,
        client: AsyncClient,
        sales_contact: Contact,
        auth_headers_sales: dict
    ):
        response = await client.post(
            "/api/v1/purchases",
            headers=auth_headers_sales,
            json={
                "contact_id": sales_contact.id,
                "item": "Web order",
                "unit_amount": "8.00",
                "purchase_date": "2026-03-05T10:00:00.000Z"
            }
        )

        assert response.status_code == 201
        assert response.json()["purchase_date"].startswith("2026-03-05T10:00:00")


# -----------------------------------------------------------------------------
# List Tests
# -----------------------------------------------------------------------------

class TestListPurchases:
    """Tests for purchase listing."""

    @pytest.mark.asyncio
    async def test_list_follows_contact_visibility(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_company: Company,
        sales_contact: Contact,
        sales_user: User,
        other_sales_user: User,
        auth_headers_sales: dict,
        auth_headers_admin: dict
    ):
        theirs = await ContactFactory.create(
            db_session, company_id=test_company.id, created_by=other_sales_user.id,
            assigned_user_id=other_sales_user.id, name="Theirs"
        )
        mine = await PurchaseFactory.create(db_session, sales_contact, created_by=sales_user.id)
        await PurchaseFactory.create(db_session, theirs, created_by=other_sales_user.id)

        response = await client.get("/api/v1/purchases", headers=auth_headers_sales)
        assert [p["id"] for p in response.json()] == [mine.id]

        response = await client.get("/api/v1/purchases", headers=auth_headers_admin)
        assert len(response.json()) == 2

    @pytest.mark.asyncio
    async def test_filter_by_date_range(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        sales_contact: Contact,
        sales_user: User,
        auth_headers_sales: dict
    ):
        await PurchaseFactory.create(
            db_session, sales_contact, created_by=sales_user.id, item="January",
            purchase_date=datetime(2026, 1, 15, 12, 0)
        )
        await PurchaseFactory.create(
            db_session, sales_contact, created_by=sales_user.id, item="March",
            purchase_date=datetime(2026, 3, 10, 9, 30)
        )

        response = await client.get(
            "/api/v1/purchases",
            headers=auth_headers_sales,
            params={"from_date": "2026-03-01", "to_date": "2026-03-31"}
        )

        assert [p["item"] for p in response.json()] == ["March"]

    @pytest.mark.asyncio
    async def test_contact_purchases_endpoint(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        sales_contact: Contact,
        sales_user: User,
        auth_headers_sales: dict,
        auth_headers_other_sales: dict
    ):
        await PurchaseFactory.create(db_session, sales_contact, created_by=sales_user.id)

        response = await client.get(
            f"/api/v1/contacts/{sales_contact.id}/purchases", headers=auth_headers_sales
        )
        assert len(response.json()) == 1

        response = await client.get(
            f"/api/v1/contacts/{sales_contact.id}/purchases", headers=auth_headers_other_sales
        )
        assert response.status_code == 404


# -----------------------------------------------------------------------------
# Edit and Delete Tests
# -----------------------------------------------------------------------------

class TestEditPurchase:
    """Purchases are immutable for non-admins once recorded."""

    @pytest.mark.asyncio
    async def test_creator_cannot_edit(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        sales_contact: Contact,
        sales_user: User,
        auth_headers_sales: dict
    ):
        purchase = await PurchaseFactory.create(db_session, sales_contact, created_by=sales_user.id)

        response = await client.patch(
            f"/api/v1/purchases/{purchase.id}",
            headers=auth_headers_sales,
            json={"quantity": 5}
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Only admins can edit purchases"

        response = await client.delete(f"/api/v1/purchases/{purchase.id}", headers=auth_headers_sales)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_edit_recomputes_amount(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        sales_contact: Contact,
        sales_user: User,
        auth_headers_admin: dict
    ):
        purchase = await PurchaseFactory.create(
            db_session, sales_contact, created_by=sales_user.id, unit_amount=Decimal("10.00")
        )

        response = await client.patch(
            f"/api/v1/purchases/{purchase.id}",
            headers=auth_headers_admin,
            json={"quantity": 4}
        )

        assert response.status_code == 200
        assert Decimal(response.json()["amount"]) == Decimal("40.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["unit_amount", "quantity", "purchase_date", "item"])
    async def test_null_required_field_rejected(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        sales_contact: Contact,
        sales_user: User,
        auth_headers_admin: dict,
        field: str
    ):
        purchase = await PurchaseFactory.create(
            db_session, sales_contact, created_by=sales_user.id, unit_amount=Decimal("10.00")
        )
        purchase_id = purchase.id

        response = await client.patch(
            f"/api/v1/purchases/{purchase_id}",
            headers=auth_headers_admin,
            json={field: None}
        )
        assert response.status_code == 422

        response = await client.get(f"/api/v1/purchases/{purchase_id}", headers=auth_headers_admin)
        assert Decimal(response.json()["amount"]) == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_admin_delete(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        sales_contact: Contact,
        sales_user: User,
        auth_headers_admin: dict
    ):
        purchase = await PurchaseFactory.create(db_session, sales_contact, created_by=sales_user.id)
        purchase_id = purchase.id

        response = await client.delete(f"/api/v1/purchases/{purchase_id}", headers=auth_headers_admin)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/purchases/{purchase_id}", headers=auth_headers_admin)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_foreign_admin_cannot_see_purchase(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        sales_contact: Contact,
        sales_user: User,
        auth_headers_foreign: dict
    ):
        purchase = await PurchaseFactory.create(db_session, sales_contact, created_by=sales_user.id)

        response = await client.patch(
            f"/api/v1/purchases/{purchase.id}",
            headers=auth_headers_foreign,
            json={"quantity": 2}
        )

        assert response.status_code == 404

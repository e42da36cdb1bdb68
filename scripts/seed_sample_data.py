"""
Sample data seeding script for the Tenant CRM.
Creates a demo company with an admin, two salesworkers, contacts, purchases,
a voucher rule and a few issued vouchers. Everything goes through the service
layer, so the seeded data obeys the same access rules as the API.
"""
import asyncio
import sys
from pathlib import Path
from datetime import datetime, timedelta
from decimal import Decimal
import random

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import AsyncSessionLocal, Base, engine
from app.core.exceptions import Conflict
from app.models.user import User
from app.models.voucher import DiscountType
from app.schemas.contact import ContactCreate
from app.schemas.purchase import PurchaseCreate
from app.schemas.voucher import VoucherIssue, VoucherRuleCreate
from app.services.contact_service import ContactService
from app.services.company_service import CompanyService
from app.services.identity_service import IdentityService
from app.services.purchase_service import PurchaseService
from app.services.voucher_service import VoucherService


# Sample data configurations
COMPANY_NAME = "Demo Company"
ADMIN_EMAIL = "admin@demo.com"
SALES_EMAILS = ["alice@demo.com", "bob@demo.com"]
DEMO_PASSWORD = "demo12345"

CONTACT_NAMES = [
    "Harper Lane", "Jordan Reyes", "Casey Morgan", "Riley Chen", "Avery Patel",
    "Quinn Walsh", "Rowan Diaz", "Sage Kim", "Emerson Cole", "Finley Ward",
]

ITEMS = [
    ("Starter plan", Decimal("49.00")),
    ("Pro plan", Decimal("250.00")),
    ("Onboarding session", Decimal("120.00")),
    ("Support add-on", Decimal("19.90")),
]


async def create_users(db: AsyncSession):
    """Create (or reuse) the demo admin and salesworkers."""
    print("Creating company and users...")
    service = CompanyService(db)
    users = []

    for email in [ADMIN_EMAIL] + SALES_EMAILS:
        try:
            user, role, created = await service.register_user(
                email=email,
                password=DEMO_PASSWORD,
                full_name=email.split("@")[0].title(),
                company_name=COMPANY_NAME,
            )
            print(f"  ✓ Registered {email} as {role.value}{' (company created)' if created else ''}")
        except Conflict:
            result = await db.execute(select(User).where(User.email == email))
            user = result.scalar_one()
            print(f"  ✓ User already exists: {email}")
        users.append(user)

    return users


async def create_contacts_and_purchases(db: AsyncSession, salesworkers: list):
    print("\nCreating contacts and purchases...")
    identity = IdentityService(db)
    contacts = []

    for i, name in enumerate(CONTACT_NAMES):
        owner = salesworkers[i % len(salesworkers)]
        caller = await identity.caller_for(owner)

        contact = await ContactService(db).create_contact(
            caller,
            ContactCreate(
                name=name,
                email=f"{name.lower().replace(' ', '.')}@example.com",
                phone=f"555-01{i:02d}",
            ),
        )
        contacts.append(contact)

        for _ in range(random.randint(1, 4)):
            item, unit_amount = random.choice(ITEMS)
            await PurchaseService(db).record_purchase(
                caller,
                PurchaseCreate(
                    contact_id=contact.id,
                    item=item,
                    unit_amount=unit_amount,
                    quantity=random.randint(1, 3),
                    purchase_date=datetime.utcnow() - timedelta(days=random.randint(0, 90)),
                ),
            )
        print(f"  ✓ Created contact {name} for {owner.email}")

    return contacts


async def create_vouchers(db: AsyncSession, admin: User, contacts: list):
    print("\nCreating voucher rule and vouchers...")
    caller = await IdentityService(db).caller_for(admin)
    service = VoucherService(db)

    rule = await service.create_rule(
        caller,
        VoucherRuleCreate(
            name="Loyalty 10%",
            description="Ten percent off for returning customers",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            max_discount_amount=Decimal("50.00"),
        ),
    )
    print(f"  ✓ Created rule: {rule.name}")

    vouchers = []
    for contact in contacts[:3]:
        voucher = await service.issue_voucher(
            caller, VoucherIssue(contact_id=contact.id, voucher_rule_id=rule.id)
        )
        vouchers.append(voucher)
        print(f"  ✓ Issued {voucher.code}")

    return vouchers


async def main():
    """Main seeding function."""
    print("=" * 60)
    print("Tenant CRM - Sample Data Seeding Script")
    print("=" * 60)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        try:
            users = await create_users(db)
            admin, salesworkers = users[0], users[1:]

            contacts = await create_contacts_and_purchases(db, salesworkers)
            vouchers = await create_vouchers(db, admin, contacts)

            print("\n" + "=" * 60)
            print("✓ Sample data seeding completed successfully!")
            print("=" * 60)
            print(f"\nLogin credentials (password for all: {DEMO_PASSWORD}):")
            for user in users:
                print(f"  - {user.email}")
            print(f"\nCreated:")
            print(f"  - 1 company: {COMPANY_NAME}")
            print(f"  - {len(contacts)} contacts with purchases")
            print(f"  - {len(vouchers)} vouchers")
            print("=" * 60)

        except Exception as e:
            print(f"\n✗ Error during seeding: {str(e)}")
            await db.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(main())

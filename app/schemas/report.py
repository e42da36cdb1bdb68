from pydantic import BaseModel
from decimal import Decimal
from typing import List, Optional

from app.schemas.purchase import PurchaseResponse


class ReportSummaryResponse(BaseModel):
    """Totals over the contacts and purchases visible to the caller."""
    total_contacts: int
    total_purchases: int
    total_revenue: Decimal
    scope: str  # "company" for admins, "user" otherwise


class UserPerformance(BaseModel):
    user_id: str
    name: str
    contacts: int
    purchases: int
    revenue: Decimal


class ContactBrief(BaseModel):
    id: str
    name: str
    created_by: str
    assigned_user_id: Optional[str]


class UserDrilldownResponse(BaseModel):
    user: UserPerformance
    contacts: List[ContactBrief]
    purchases: List[PurchaseResponse]


class MonthlyRevenue(BaseModel):
    month: str  # YYYY-MM
    purchases: int
    revenue: Decimal

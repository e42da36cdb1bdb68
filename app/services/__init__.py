"""
CRM Services Module

Business logic for the CRM application. Every public method takes the
resolved ``Caller`` explicitly and enforces the access policy.
"""

from app.services.identity_service import IdentityService
from app.services.company_service import CompanyService
from app.services.contact_service import ContactService
from app.services.purchase_service import PurchaseService
from app.services.voucher_service import VoucherService
from app.services.report_service import ReportService

__all__ = [
    "IdentityService",
    "CompanyService",
    "ContactService",
    "PurchaseService",
    "VoucherService",
    "ReportService",
]

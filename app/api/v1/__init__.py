from fastapi import APIRouter
from app.api.v1 import auth, company, contacts, purchases, voucher_rules, vouchers, reports

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(company.router, prefix="/company", tags=["company"])
api_router.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
api_router.include_router(purchases.router, prefix="/purchases", tags=["purchases"])
api_router.include_router(voucher_rules.router, prefix="/voucher-rules", tags=["voucher-rules"])
api_router.include_router(vouchers.router, prefix="/vouchers", tags=["vouchers"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])

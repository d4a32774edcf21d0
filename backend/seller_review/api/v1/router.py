from fastapi import APIRouter

from seller_review.api.v1 import vendor_approvals

api_router = APIRouter()

api_router.include_router(vendor_approvals.router, prefix="/vendor-approvals", tags=["vendor-approvals"])

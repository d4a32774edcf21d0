from seller_review.models.vendor import VendorApproval
from seller_review.models.audit import AuditLog

__all__ = [
    "VendorApproval",
    "AuditLog",
]

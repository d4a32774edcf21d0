from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from seller_review.db.base import Base, TimestampMixin


class VendorApproval(Base, TimestampMixin):
    """Per-vendor onboarding review row.

    Profile and document columns are written by registration and the
    document store; this service only writes the two JSON review columns
    and the timestamps.
    """

    __tablename__ = "vendor_approvals"

    vendor_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False, default="individual")
    variant: Mapped[str] = mapped_column(String(50), nullable=False, default="seller")

    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    shop_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    individual_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    individual_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    business_registration_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Document URLs (object keys in the document store)
    business_license_document: Mapped[str | None] = mapped_column(String(500), nullable=True)
    tax_certificate_document: Mapped[str | None] = mapped_column(String(500), nullable=True)
    bank_document: Mapped[str | None] = mapped_column(String(500), nullable=True)
    government_id_document: Mapped[str | None] = mapped_column(String(500), nullable=True)
    proof_of_address_document: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # {"shop": "approved", "business": "rejected", ...}
    section_approval_status: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # {"business": "License expired", ...}
    admin_approval_notes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

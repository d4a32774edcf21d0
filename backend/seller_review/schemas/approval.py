"""Value types and records for seller onboarding section review."""
import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field


class SectionName(str, enum.Enum):
    shop = "shop"
    business = "business"
    shipping = "shipping"
    payment = "payment"
    profile = "profile"


class ApprovalState(str, enum.Enum):
    pending = "pending"
    under_review = "under_review"
    approved = "approved"
    rejected = "rejected"


class AccountType(str, enum.Enum):
    individual = "individual"
    company = "company"


class WorkflowVariant(str, enum.Enum):
    seller = "seller"                      # full seller profile review
    business_license = "business_license"  # license review, business section only


class DocumentCompleteness(str, enum.Enum):
    complete = "complete"
    partial = "partial"
    missing = "missing"


VARIANT_SECTIONS: dict[WorkflowVariant, tuple[SectionName, ...]] = {
    WorkflowVariant.seller: tuple(SectionName),
    WorkflowVariant.business_license: (SectionName.business,),
}


# ─── Section status ───

class SectionStatus(BaseModel):
    """State of one section plus the reviewer's note.

    The note is advisory metadata and never drives any transition logic.
    """
    model_config = ConfigDict(frozen=True)

    state: ApprovalState = ApprovalState.pending
    note: str | None = None


PENDING = SectionStatus()


# ─── Vendor approval record ───

class VendorApprovalRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    vendor_id: str = Field(min_length=1)
    account_type: AccountType = AccountType.individual
    variant: WorkflowVariant = WorkflowVariant.seller

    # Display fields supplied by the identity/profile store
    email: str | None = None
    shop_name: str | None = None
    company_name: str | None = None
    individual_first_name: str | None = None
    individual_last_name: str | None = None
    business_registration_number: str | None = None

    # Precomputed by the document store side, passed through untouched
    document_completeness: DocumentCompleteness | None = None

    sections: dict[SectionName, SectionStatus] = Field(default_factory=dict)

    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def display_name(self) -> str:
        if self.account_type == AccountType.company and self.company_name:
            return self.company_name
        person = " ".join(
            p for p in (self.individual_first_name, self.individual_last_name) if p
        )
        return person or self.shop_name or self.email or self.vendor_id

    @property
    def section_names(self) -> tuple[SectionName, ...]:
        """Sections reviewed for this vendor's workflow variant."""
        return VARIANT_SECTIONS[self.variant]

    def section_status(self, section: SectionName) -> SectionStatus:
        """Read a section, treating an absent entry as pending with no note."""
        return self.sections.get(section, PENDING)


def overall_status(record: VendorApprovalRecord) -> ApprovalState:
    """Summarise a vendor's standing across the sections of its variant.

    approved only when every section is approved; a single rejection wins
    over anything else, then under_review, then pending.
    """
    states = {record.section_status(s).state for s in record.section_names}
    if states == {ApprovalState.approved}:
        return ApprovalState.approved
    if ApprovalState.rejected in states:
        return ApprovalState.rejected
    if ApprovalState.under_review in states:
        return ApprovalState.under_review
    return ApprovalState.pending


# ─── Change events ───

class SectionTransition(BaseModel):
    """One applied section status change, kept as review history."""
    model_config = ConfigDict(frozen=True)

    vendor_id: str
    section: SectionName
    from_state: ApprovalState
    to_state: ApprovalState
    note: str | None = None
    reviewer: str | None = None
    changed_at: datetime


# ─── Registry queries ───

class SectionStatusFilter(BaseModel):
    section: SectionName
    state: ApprovalState


class ApprovalFilter(BaseModel):
    search_text: str | None = None
    section_status: SectionStatusFilter | None = None
    any_section_state: ApprovalState | None = None
    document_completeness: DocumentCompleteness | None = None
    variant: WorkflowVariant | None = None


class ApprovalStats(BaseModel):
    total: int = 0
    section: SectionName | None = None  # None means counts are by overall status
    by_state: dict[ApprovalState, int] = Field(
        default_factory=lambda: {s: 0 for s in ApprovalState}
    )
    by_document_completeness: dict[DocumentCompleteness, int] = Field(
        default_factory=lambda: {d: 0 for d in DocumentCompleteness}
    )


# ─── API bodies ───

class SectionStatusUpdate(BaseModel):
    # Kept as a plain string so unknown states reach the workflow's own validation.
    state: str
    note: str | None = None


class VendorApprovalOut(VendorApprovalRecord):
    overall_status: ApprovalState


class VendorApprovalListResponse(BaseModel):
    items: list[VendorApprovalOut]
    total: int


class SectionHistoryResponse(BaseModel):
    vendor_id: str
    items: list[SectionTransition]

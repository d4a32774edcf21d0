"""Seller onboarding review endpoints.

  GET   /vendor-approvals                            list with filters
  GET   /vendor-approvals/stats                      counts for dashboard cards
  GET   /vendor-approvals/{vendor_id}                one record
  PATCH /vendor-approvals/{vendor_id}/sections/{s}   set a section's status
  GET   /vendor-approvals/{vendor_id}/history        applied transitions

Workflow errors are mapped to HTTP responses by the handlers in main.py.
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from seller_review.core.config import settings
from seller_review.core.deps import get_reviewer, get_workflow
from seller_review.core.limiter import limiter
from seller_review.schemas.approval import (
    ApprovalFilter,
    ApprovalState,
    ApprovalStats,
    DocumentCompleteness,
    SectionHistoryResponse,
    SectionName,
    SectionStatusFilter,
    SectionStatusUpdate,
    VendorApprovalListResponse,
    VendorApprovalOut,
    VendorApprovalRecord,
    WorkflowVariant,
    overall_status,
)
from seller_review.services.workflow import ApprovalWorkflow

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_out(record: VendorApprovalRecord) -> VendorApprovalOut:
    return VendorApprovalOut(**dict(record), overall_status=overall_status(record))


# ─── List ───

@router.get(
    "",
    response_model=VendorApprovalListResponse,
    summary="List vendor approval records with optional filters",
)
def list_vendor_approvals(
    workflow: Annotated[ApprovalWorkflow, Depends(get_workflow)],
    q: str | None = Query(default=None, description="Search vendor id, name, email, shop, company"),
    section: SectionName | None = Query(default=None),
    state: ApprovalState | None = Query(default=None, description="State of `section`"),
    any_state: ApprovalState | None = Query(default=None, description="Any section in this state"),
    documents: DocumentCompleteness | None = Query(default=None),
    variant: WorkflowVariant | None = Query(default=None),
):
    if (section is None) != (state is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'section' and 'state' must be given together.",
        )

    flt = ApprovalFilter(
        search_text=q,
        section_status=SectionStatusFilter(section=section, state=state) if section else None,
        any_section_state=any_state,
        document_completeness=documents,
        variant=variant,
    )
    items = [_to_out(r) for r in workflow.registry.list(flt)]
    return VendorApprovalListResponse(items=items, total=len(items))


# ─── Stats ───

@router.get(
    "/stats",
    response_model=ApprovalStats,
    summary="Count vendors by state and document completeness",
)
def vendor_approval_stats(
    workflow: Annotated[ApprovalWorkflow, Depends(get_workflow)],
    section: SectionName | None = Query(default=None, description="Count this section instead of overall status"),
):
    return workflow.registry.stats(section)


# ─── Detail ───

@router.get(
    "/{vendor_id}",
    response_model=VendorApprovalOut,
    summary="Get one vendor's approval record",
)
def get_vendor_approval(
    vendor_id: str,
    workflow: Annotated[ApprovalWorkflow, Depends(get_workflow)],
):
    return _to_out(workflow.registry.get(vendor_id))


# ─── Section update ───

@router.patch(
    "/{vendor_id}/sections/{section}",
    response_model=VendorApprovalOut,
    summary="Set the approval state of one section",
)
@limiter.limit(settings.RATE_LIMIT_REVIEW_UPDATES)
def update_section_status(
    request: Request,
    vendor_id: str,
    section: str,
    body: SectionStatusUpdate,
    workflow: Annotated[ApprovalWorkflow, Depends(get_workflow)],
    reviewer: Annotated[str | None, Depends(get_reviewer)],
):
    record = workflow.set_section_status(
        vendor_id, section, body.state, note=body.note, reviewer=reviewer
    )
    return _to_out(record)


# ─── History ───

@router.get(
    "/{vendor_id}/history",
    response_model=SectionHistoryResponse,
    summary="List applied section transitions, oldest first",
)
def get_vendor_approval_history(
    vendor_id: str,
    workflow: Annotated[ApprovalWorkflow, Depends(get_workflow)],
    section: str | None = Query(default=None),
):
    return SectionHistoryResponse(vendor_id=vendor_id, items=workflow.history(vendor_id, section))

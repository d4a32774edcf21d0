"""SQLAlchemy persistence for vendor approval records.

Section statuses and reviewer notes live in two JSON columns keyed by section
name, next to the profile and document columns owned by registration. Every
applied transition is also written to the audit log, which doubles as the
section history when the registry is rebuilt at startup.
"""
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seller_review.core.exceptions import PersistenceError
from seller_review.models.vendor import VendorApproval
from seller_review.schemas.approval import (
    SectionName,
    SectionStatus,
    SectionTransition,
    VendorApprovalRecord,
)
from seller_review.services import audit as audit_svc
from seller_review.services.documents import DocumentPresence, document_completeness
from seller_review.services.registry import ApprovalRegistry

logger = logging.getLogger(__name__)

TRANSITION_ACTION = "section_status.changed"


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ─── Row <-> record mapping ───

def row_to_record(row: VendorApproval) -> VendorApprovalRecord:
    statuses = row.section_approval_status or {}
    notes = row.admin_approval_notes or {}
    sections = {
        SectionName(name): SectionStatus(state=statuses.get(name, "pending"), note=notes.get(name))
        for name in set(statuses) | set(notes)
    }
    presence = DocumentPresence.from_urls(
        business_license=row.business_license_document,
        tax_certificate=row.tax_certificate_document,
        registration_number=row.business_registration_number,
        bank_document=row.bank_document,
        government_id=row.government_id_document,
        proof_of_address=row.proof_of_address_document,
    )
    return VendorApprovalRecord(
        vendor_id=row.vendor_id,
        account_type=row.account_type,
        variant=row.variant,
        email=row.email,
        shop_name=row.shop_name,
        company_name=row.company_name,
        individual_first_name=row.individual_first_name,
        individual_last_name=row.individual_last_name,
        business_registration_number=row.business_registration_number,
        document_completeness=document_completeness(presence),
        sections=sections,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def apply_record(row: VendorApproval, record: VendorApprovalRecord) -> None:
    """Copy the review fields of a record onto its row."""
    row.section_approval_status = {
        name.value: status.state.value for name, status in record.sections.items()
    }
    row.admin_approval_notes = {
        name.value: status.note for name, status in record.sections.items() if status.note
    }
    row.updated_at = record.updated_at


class SqlApprovalStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def save(self, record: VendorApprovalRecord, transition: SectionTransition) -> None:
        """Write the record's review columns and its transition in one commit.

        Safe to retry: the row ends up identical and an already stored
        transition is not logged twice.
        """
        after = transition.model_dump(mode="json")
        with self.session_factory() as db:
            try:
                row = db.get(VendorApproval, record.vendor_id)
                if row is None:
                    row = VendorApproval(
                        vendor_id=record.vendor_id,
                        account_type=record.account_type.value,
                        variant=record.variant.value,
                        email=record.email,
                        shop_name=record.shop_name,
                        company_name=record.company_name,
                        individual_first_name=record.individual_first_name,
                        individual_last_name=record.individual_last_name,
                        business_registration_number=record.business_registration_number,
                        created_at=record.created_at,
                    )
                    db.add(row)
                apply_record(row, record)

                if not audit_svc.exists(db, TRANSITION_ACTION, record.vendor_id, after):
                    audit_svc.log(
                        db,
                        action=TRANSITION_ACTION,
                        entity_type="vendor",
                        entity_id=record.vendor_id,
                        actor_email=transition.reviewer,
                        before={"section": transition.section.value, "state": transition.from_state.value},
                        after=after,
                        notes=transition.note,
                    )
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error(
                    "Persisting approval record failed: vendor=%s: %s", record.vendor_id, exc
                )
                raise PersistenceError(record.vendor_id, str(exc)) from exc
        logger.debug("Persisted approval record: vendor=%s", record.vendor_id)

    def load_records(self) -> list[VendorApprovalRecord]:
        """Read every stored row. Rows that do not validate are logged and skipped."""
        records = []
        with self.session_factory() as db:
            rows = db.execute(
                select(VendorApproval).order_by(VendorApproval.created_at.asc())
            ).scalars().all()
            for row in rows:
                try:
                    records.append(row_to_record(row))
                except ValueError as exc:
                    logger.error("Skipping invalid approval row: vendor=%s: %s", row.vendor_id, exc)
        return records

    def load_transitions(self) -> list[SectionTransition]:
        with self.session_factory() as db:
            entries = audit_svc.entries(db, TRANSITION_ACTION, "vendor")
        transitions = [
            SectionTransition.model_validate_json(e.after_state)
            for e in entries
            if e.after_state
        ]
        transitions.sort(key=lambda t: t.changed_at)
        return transitions

    def load_into(self, registry: ApprovalRegistry) -> int:
        """Replay stored records and their history into the registry."""
        records = self.load_records()
        for record in records:
            registry.upsert(record)
        for transition in self.load_transitions():
            if transition.vendor_id in registry:
                registry.record_transition(transition)
        logger.info("Loaded %d vendor approval records", len(records))
        return len(records)

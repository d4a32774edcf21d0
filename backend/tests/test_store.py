"""Tests for the SQLAlchemy approval store.

Uses an in-memory SQLite database; the failure path uses a MagicMock session.
"""
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from seller_review.core.exceptions import PersistenceError
from seller_review.db.base import Base
from seller_review.models import AuditLog, VendorApproval
from seller_review.schemas.approval import (
    ApprovalState,
    DocumentCompleteness,
    SectionName,
    SectionStatus,
)
from seller_review.services import store as store_module
from seller_review.services.registry import ApprovalRegistry
from seller_review.services.store import SqlApprovalStore, TRANSITION_ACTION
from seller_review.services.workflow import ApprovalWorkflow


CREATED = datetime(2026, 2, 1, 8, 30, tzinfo=timezone.utc)


# ─── Helpers ──────────────────────────────────────────────────────────────────

@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    yield factory
    engine.dispose()


def _seed(factory, **overrides) -> None:
    values = dict(
        vendor_id="sup-1",
        account_type="company",
        variant="seller",
        email="hello@acme.test",
        company_name="Acme GmbH",
        business_registration_number="HRB-1234",
        business_license_document="licenses/sup-1.pdf",
        tax_certificate_document="tax/sup-1.pdf",
        section_approval_status={"shop": "approved", "business": "under_review"},
        admin_approval_notes={"business": "Checking license number"},
        created_at=CREATED,
        updated_at=CREATED,
    )
    values.update(overrides)
    with factory() as db:
        db.add(VendorApproval(**values))
        db.commit()


def _loaded(factory) -> tuple[SqlApprovalStore, ApprovalRegistry]:
    store = SqlApprovalStore(factory)
    registry = ApprovalRegistry()
    store.load_into(registry)
    return store, registry


# ─── Loading ──────────────────────────────────────────────────────────────────

def test_load_maps_row_to_record(session_factory):
    _seed(session_factory)

    _, registry = _loaded(session_factory)
    record = registry.get("sup-1")

    assert record.display_name == "Acme GmbH"
    assert record.sections[SectionName.shop] == SectionStatus(state="approved")
    assert record.sections[SectionName.business] == SectionStatus(
        state="under_review", note="Checking license number"
    )
    assert record.section_status(SectionName.payment) == SectionStatus()
    assert record.document_completeness == DocumentCompleteness.complete
    assert record.created_at == CREATED
    assert record.created_at.tzinfo is not None


def test_load_note_without_status_defaults_to_pending(session_factory):
    _seed(session_factory, section_approval_status={}, admin_approval_notes={"profile": "Add avatar"})

    _, registry = _loaded(session_factory)

    assert registry.get("sup-1").sections[SectionName.profile] == SectionStatus(
        state="pending", note="Add avatar"
    )


def test_load_skips_rows_with_unknown_sections(session_factory):
    _seed(session_factory)
    _seed(session_factory, vendor_id="sup-bad", section_approval_status={"warehouse": "approved"})

    _, registry = _loaded(session_factory)

    assert "sup-1" in registry
    assert "sup-bad" not in registry


# ─── Saving ───────────────────────────────────────────────────────────────────

def test_workflow_update_is_persisted_and_reloaded(session_factory):
    _seed(session_factory)
    store, registry = _loaded(session_factory)
    wf = ApprovalWorkflow(registry, store=store)

    wf.set_section_status("sup-1", "business", "rejected", note="License expired", reviewer="kim@ops.test")

    with session_factory() as db:
        row = db.get(VendorApproval, "sup-1")
        assert row.section_approval_status == {"shop": "approved", "business": "rejected"}
        assert row.admin_approval_notes == {"business": "License expired"}
        assert row.company_name == "Acme GmbH"

    _, fresh = _loaded(session_factory)
    record = fresh.get("sup-1")
    assert record.section_status(SectionName.business).state == ApprovalState.rejected
    history = fresh.history("sup-1")
    assert len(history) == 1
    assert history[0].from_state == ApprovalState.under_review
    assert history[0].reviewer == "kim@ops.test"


def test_save_writes_audit_entry(session_factory):
    _seed(session_factory)
    store, registry = _loaded(session_factory)
    ApprovalWorkflow(registry, store=store).set_section_status(
        "sup-1", "shipping", "approved", reviewer="kim@ops.test"
    )

    with session_factory() as db:
        entries = db.execute(select(AuditLog)).scalars().all()

    assert len(entries) == 1
    entry = entries[0]
    assert entry.action == TRANSITION_ACTION
    assert entry.entity_id == "sup-1"
    assert entry.actor_email == "kim@ops.test"
    assert json.loads(entry.before_state) == {"section": "shipping", "state": "pending"}
    assert json.loads(entry.after_state)["to_state"] == "approved"


def test_retrying_same_save_is_idempotent(session_factory):
    """Saving the same record and transition twice leaves one audit entry."""
    _seed(session_factory)
    store, registry = _loaded(session_factory)
    wf = ApprovalWorkflow(registry, store=store)
    record = wf.set_section_status("sup-1", "payment", "approved")
    transition = registry.history("sup-1")[-1]

    store.save(record, transition)

    with session_factory() as db:
        count = len(db.execute(select(AuditLog)).scalars().all())
        row = db.get(VendorApproval, "sup-1")
    assert count == 1
    assert row.section_approval_status["payment"] == "approved"


def test_retry_after_failed_commit_stores_original_transition(session_factory, monkeypatch):
    """The first failed write must not cost the pending -> approved entry."""
    _seed(session_factory)
    store, registry = _loaded(session_factory)
    wf = ApprovalWorkflow(registry, store=store)

    real_apply = store_module.apply_record
    calls = {"n": 0}

    def flaky_apply(row, record):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("UPDATE", {}, Exception("database is locked"))
        real_apply(row, record)

    monkeypatch.setattr(store_module, "apply_record", flaky_apply)

    with pytest.raises(PersistenceError):
        wf.set_section_status("sup-1", "payment", "approved")
    wf.set_section_status("sup-1", "payment", "approved")

    _, fresh = _loaded(session_factory)
    durable = [(t.section, t.from_state, t.to_state) for t in fresh.history("sup-1")]
    in_memory = [(t.section, t.from_state, t.to_state) for t in registry.history("sup-1")]

    assert durable == [(SectionName.payment, ApprovalState.pending, ApprovalState.approved)]
    assert in_memory == durable
    assert fresh.get("sup-1").section_status(SectionName.payment).state == ApprovalState.approved


def test_save_creates_missing_row(session_factory):
    """A record known only to the registry gets a row on first save."""
    store, registry = _loaded(session_factory)
    from seller_review.schemas.approval import VendorApprovalRecord

    registry.upsert(VendorApprovalRecord(
        vendor_id="sup-new", shop_name="New Shop", created_at=CREATED, updated_at=CREATED,
    ))
    ApprovalWorkflow(registry, store=store).set_section_status("sup-new", "shop", "under_review")

    with session_factory() as db:
        row = db.get(VendorApproval, "sup-new")
    assert row is not None
    assert row.shop_name == "New Shop"
    assert row.section_approval_status == {"shop": "under_review"}


def test_database_error_becomes_persistence_error():
    db = MagicMock()
    db.__enter__.return_value = db
    db.get.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
    store = SqlApprovalStore(lambda: db)

    from seller_review.schemas.approval import SectionTransition, VendorApprovalRecord

    record = VendorApprovalRecord(vendor_id="sup-1", created_at=CREATED, updated_at=CREATED)
    transition = SectionTransition(
        vendor_id="sup-1", section="shop", from_state="pending", to_state="approved",
        changed_at=CREATED,
    )

    with pytest.raises(PersistenceError) as exc_info:
        store.save(record, transition)

    assert exc_info.value.vendor_id == "sup-1"
    assert "database is locked" in exc_info.value.reason
    db.rollback.assert_called_once()
    db.commit.assert_not_called()

"""Append-only writes to the audit_logs table."""
import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from seller_review.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _dump(value: Any | None) -> str | None:
    return json.dumps(value, default=str, sort_keys=True) if value is not None else None


def log(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    actor_email: str | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Write a single audit log entry.

    Args:
        db: Sync SQLAlchemy session. The caller controls the transaction.
        action: Short verb, e.g. 'section_status.changed'.
        entity_type: Domain name, e.g. 'vendor'.
        entity_id: Key of the affected record.
        actor_email: Reviewer who performed the action (None for system actions).
        before: Dict snapshot of state before the action (JSON-serialisable).
        after: Dict snapshot of state after the action.
        notes: Free-text annotation.
    """
    entry = AuditLog(
        actor_email=actor_email,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before_state=_dump(before),
        after_state=_dump(after),
        notes=notes,
    )
    db.add(entry)
    db.flush()  # get id without committing; caller controls the transaction
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry


def exists(db: Session, action: str, entity_id: str, after: Any) -> bool:
    """True if an identical entry was already written (used to make retries idempotent)."""
    row = db.execute(
        select(AuditLog.id).where(
            AuditLog.action == action,
            AuditLog.entity_id == entity_id,
            AuditLog.after_state == _dump(after),
        )
    ).first()
    return row is not None


def entries(db: Session, action: str, entity_type: str) -> list[AuditLog]:
    """All entries for an action, oldest first."""
    return list(
        db.execute(
            select(AuditLog)
            .where(AuditLog.action == action, AuditLog.entity_type == entity_type)
            .order_by(AuditLog.created_at.asc())
        ).scalars().all()
    )

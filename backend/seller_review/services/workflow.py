"""Section approval workflow: validates and applies section status changes.

Any state may move to any other state (including itself). Review is a
human judgment call, so reviewers can re-approve, revert an approval back to
under_review, or re-reject at any point.

Validation happens before anything is written. Once a change is applied to
the registry it is handed to the persistence collaborator; a failure there
propagates as PersistenceError with the in-memory record already updated.
The transition stays unsaved and out of the history until a retry of the
same call stores it.

Updates to one vendor are serialised from the registry read through the
store write, so concurrent changes to different sections never overwrite
each other in memory or in storage.
"""
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

from seller_review.core.exceptions import (
    InvalidStateError,
    PersistenceError,
    UnknownSectionError,
    UnknownVendorError,
)
from seller_review.schemas.approval import (
    ApprovalState,
    SectionName,
    SectionStatus,
    SectionTransition,
    VendorApprovalRecord,
    overall_status,
)
from seller_review.services.registry import ApprovalRegistry

logger = logging.getLogger(__name__)


class ApprovalStore(Protocol):
    """Durable storage for applied updates. Must be idempotent under retry."""

    def save(self, record: VendorApprovalRecord, transition: SectionTransition) -> None:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── Input coercion ───

def _coerce_section(record: VendorApprovalRecord, section: SectionName | str) -> SectionName:
    allowed = tuple(s.value for s in record.section_names)
    try:
        name = SectionName(section)
    except ValueError:
        raise UnknownSectionError(str(section), allowed) from None
    if name not in record.section_names:
        raise UnknownSectionError(name.value, allowed)
    return name


def _coerce_state(state: ApprovalState | str) -> ApprovalState:
    try:
        return ApprovalState(state)
    except ValueError:
        raise InvalidStateError(str(state)) from None


class ApprovalWorkflow:
    def __init__(
        self,
        registry: ApprovalRegistry,
        store: ApprovalStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.registry = registry
        self.store = store
        self.clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        # (vendor_id, section) -> transition applied in memory whose save failed
        self._unsaved: dict[tuple[str, SectionName], SectionTransition] = {}

    def _vendor_lock(self, vendor_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(vendor_id, threading.Lock())

    def set_section_status(
        self,
        vendor: VendorApprovalRecord | str,
        section: SectionName | str,
        new_state: ApprovalState | str,
        note: str | None = None,
        reviewer: str | None = None,
    ) -> VendorApprovalRecord:
        """Set one section of a vendor's record to a new state.

        Args:
            vendor: Vendor id, or a record whose vendor_id is used. The
                current copy is always re-read from the registry.
            section: One of the sections of the vendor's workflow variant.
            new_state: pending | under_review | approved | rejected.
            note: Reviewer note. Replaces the section's note when given;
                when omitted the previous note is kept.
            reviewer: Who made the change, recorded in the history only.

        Returns:
            The updated record, already stored in the registry.

        Raises:
            UnknownVendorError, UnknownSectionError, InvalidStateError: before
                any change is made.
            PersistenceError: from the store, after the registry was updated.
                Re-issuing the same call saves the original transition.
        """
        vendor_id = vendor.vendor_id if isinstance(vendor, VendorApprovalRecord) else vendor

        with self._vendor_lock(vendor_id):
            try:
                current = self.registry.get(vendor_id)
            except UnknownVendorError:
                logger.warning("Section update for unknown vendor %s", vendor_id)
                raise

            name = _coerce_section(current, section)
            state = _coerce_state(new_state)
            key = (vendor_id, name)
            unsaved = self._unsaved.get(key)

            if unsaved is not None and (unsaved.to_state, unsaved.note, unsaved.reviewer) == (
                state, note or None, reviewer,
            ):
                logger.info(
                    "Retrying save of section transition: vendor=%s section=%s %s -> %s",
                    vendor_id, name.value, unsaved.from_state.value, state.value,
                )
                updated, transition = current, unsaved
            else:
                previous = current.section_status(name)
                now = self.clock()

                sections = dict(current.sections)
                sections[name] = SectionStatus(
                    state=state,
                    note=note if note else previous.note,
                )
                updated = current.model_copy(update={"sections": sections, "updated_at": now})

                transition = SectionTransition(
                    vendor_id=vendor_id,
                    section=name,
                    # The stored history never saw an unsaved change, so start from what it did see
                    from_state=unsaved.from_state if unsaved is not None else previous.state,
                    to_state=state,
                    note=note or None,
                    reviewer=reviewer,
                    changed_at=now,
                )

                self.registry.upsert(updated)
                logger.info(
                    "Section status changed: vendor=%s section=%s %s -> %s reviewer=%s",
                    vendor_id, name.value, previous.state.value, state.value, reviewer,
                )

            if self.store is not None:
                try:
                    self.store.save(updated, transition)
                except PersistenceError:
                    self._unsaved[key] = transition
                    raise

            self._unsaved.pop(key, None)
            self.registry.record_transition(transition)
            return updated

    def overall_status(self, record: VendorApprovalRecord | str) -> ApprovalState:
        if not isinstance(record, VendorApprovalRecord):
            record = self.registry.get(record)
        return overall_status(record)

    def history(
        self, vendor_id: str, section: SectionName | str | None = None
    ) -> list[SectionTransition]:
        """Return stored transitions for a vendor, oldest first."""
        events = self.registry.history(vendor_id)
        if section is None:
            return events
        name = _coerce_section(self.registry.get(vendor_id), section)
        return [e for e in events if e.section == name]

"""In-memory collection of vendor approval records.

The registry is the read side used by the API and the write target of the
workflow. Records are frozen pydantic models, so the only way a stored record
changes is by being replaced through upsert().
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence

from seller_review.core.exceptions import UnknownVendorError
from seller_review.schemas.approval import (
    ApprovalFilter,
    ApprovalStats,
    SectionName,
    SectionTransition,
    VendorApprovalRecord,
    overall_status,
)

logger = logging.getLogger(__name__)


def _search_fields(record: VendorApprovalRecord) -> tuple[str | None, ...]:
    return (
        record.vendor_id,
        record.display_name,
        record.email,
        record.shop_name,
        record.company_name,
        record.business_registration_number,
    )


def matches(record: VendorApprovalRecord, flt: ApprovalFilter) -> bool:
    """Return True if the record satisfies every option set on the filter."""
    if flt.search_text:
        needle = flt.search_text.lower()
        if not any(f and needle in f.lower() for f in _search_fields(record)):
            return False

    if flt.section_status is not None:
        current = record.section_status(flt.section_status.section).state
        if current != flt.section_status.state:
            return False

    if flt.any_section_state is not None:
        if not any(
            record.section_status(s).state == flt.any_section_state
            for s in record.section_names
        ):
            return False

    if flt.document_completeness is not None:
        if record.document_completeness != flt.document_completeness:
            return False

    if flt.variant is not None and record.variant != flt.variant:
        return False

    return True


class RecordView(Sequence):
    """Filtered, read-only view over a snapshot of the registry.

    Iterating does not consume the view: each pass starts from the first
    match again. Matching runs lazily and the result is cached on the first
    len() or index access.
    """

    def __init__(self, snapshot: list[VendorApprovalRecord], flt: ApprovalFilter | None = None):
        self._snapshot = snapshot
        self._filter = flt
        self._matched: list[VendorApprovalRecord] | None = None

    def _matches(self) -> Iterator[VendorApprovalRecord]:
        for record in self._snapshot:
            if self._filter is None or matches(record, self._filter):
                yield record

    def _items(self) -> list[VendorApprovalRecord]:
        if self._matched is None:
            self._matched = list(self._matches())
        return self._matched

    def __iter__(self) -> Iterator[VendorApprovalRecord]:
        if self._matched is not None:
            return iter(self._matched)
        return self._matches()

    def __len__(self) -> int:
        return len(self._items())

    def __getitem__(self, index):
        return self._items()[index]


class ApprovalRegistry:
    def __init__(self, records: list[VendorApprovalRecord] | None = None):
        self._lock = threading.Lock()
        self._records: dict[str, VendorApprovalRecord] = {}
        self._history: dict[str, list[SectionTransition]] = {}
        for record in records or []:
            self.upsert(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, vendor_id: object) -> bool:
        return vendor_id in self._records

    # ─── Queries ───

    def list(self, filter: ApprovalFilter | None = None) -> RecordView:
        """Return the records matching the filter, in insertion order.

        The snapshot is taken when this is called; the view does not see
        writes made afterwards. Call again for a fresh view.
        """
        with self._lock:
            snapshot = list(self._records.values())
        return RecordView(snapshot, filter)

    def get(self, vendor_id: str) -> VendorApprovalRecord:
        record = self._records.get(vendor_id)
        if record is None:
            raise UnknownVendorError(vendor_id)
        return record

    def stats(self, section: SectionName | None = None) -> ApprovalStats:
        """Count records by state and by document completeness.

        With a section, states are that section's; otherwise overall status.
        """
        stats = ApprovalStats(section=section)
        for record in self.list():
            stats.total += 1
            if section is not None:
                state = record.section_status(section).state
            else:
                state = overall_status(record)
            stats.by_state[state] += 1
            if record.document_completeness is not None:
                stats.by_document_completeness[record.document_completeness] += 1
        return stats

    def history(self, vendor_id: str) -> list[SectionTransition]:
        if vendor_id not in self._records:
            raise UnknownVendorError(vendor_id)
        with self._lock:
            return list(self._history.get(vendor_id, []))

    # ─── Writes ───

    def upsert(self, record: VendorApprovalRecord) -> None:
        with self._lock:
            self._records[record.vendor_id] = record
        logger.debug("Registry upsert: vendor=%s", record.vendor_id)

    def record_transition(self, event: SectionTransition) -> None:
        with self._lock:
            self._history.setdefault(event.vendor_id, []).append(event)

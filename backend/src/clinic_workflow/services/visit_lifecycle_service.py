"""
Named stored-status transitions for visits.

Every change to a visit's stored status goes through one of these
transitions so the rules live in one place:

- a diagnosis always completes the visit (complete_with_diagnosis);
- Cancelled is terminal and can never be left;
- "Needs Diagnosis" is derived only and is never stored.

Transitions are pure: they return a new VisitRecord and leave persistence to
the caller.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Tuple

from clinic_workflow.core.constants import (
    STORABLE_VISIT_STATUSES,
    StaffRole,
    VisitStatus,
)
from clinic_workflow.core.exceptions import InvalidStatusTransition
from clinic_workflow.records.diagnosis import Diagnosis
from clinic_workflow.records.visit import VisitRecord
from clinic_workflow.utils.datetime_utils import coerce_date

logger = logging.getLogger(__name__)


def _append_note(existing: Optional[str], line: str) -> str:
    return f"{existing}\n{line}" if existing else line


class VisitLifecycle:
    """Stored-status transitions for a single visit."""

    @staticmethod
    def complete_with_diagnosis(
        visit: VisitRecord,
        diagnosis: Diagnosis,
        superseded: Tuple[Diagnosis, ...],
        now: datetime,
    ) -> VisitRecord:
        """
        Install a diagnosis as current and mark the visit Completed.

        This is the only transition that writes Completed because of a
        diagnosis. History bookkeeping (what `superseded` contains) is decided
        by DiagnosisHistory before calling in.

        Raises:
            InvalidStatusTransition: If the visit is Cancelled
        """
        if visit.status is VisitStatus.CANCELLED:
            raise InvalidStatusTransition(
                f"Cannot attach a diagnosis to cancelled visit {visit.id}",
                from_status=visit.status.value,
                to_status=VisitStatus.COMPLETED.value,
            )

        if visit.status is not VisitStatus.COMPLETED:
            logger.info(f"Visit {visit.id}: {visit.status.value} -> Completed (diagnosis attached)")

        return replace(
            visit,
            diagnosis=diagnosis,
            diagnoses=superseded,
            status=VisitStatus.COMPLETED,
            updated_at=now,
        )

    @staticmethod
    def cancel(visit: VisitRecord, reason: Optional[str], now: datetime) -> VisitRecord:
        """
        Cancel a visit.

        Cancelling an already-cancelled visit returns it unchanged. A visit that
        holds a diagnosis has been seen and cannot be cancelled.

        Raises:
            InvalidStatusTransition: If the visit has a diagnosis attached
        """
        if visit.status is VisitStatus.CANCELLED:
            return visit

        if visit.has_diagnosis:
            raise InvalidStatusTransition(
                f"Cannot cancel visit {visit.id}: it already has a diagnosis",
                from_status=visit.status.value,
                to_status=VisitStatus.CANCELLED.value,
            )

        notes = visit.notes
        if reason:
            notes = _append_note(notes, f"Cancellation reason: {reason}")

        logger.info(f"Visit {visit.id}: {visit.status.value} -> Cancelled")
        return replace(visit, status=VisitStatus.CANCELLED, notes=notes, updated_at=now)

    @staticmethod
    def reschedule(
        visit: VisitRecord,
        new_date: date | datetime | str,
        reason: Optional[str],
        acting_role: StaffRole | str,
        now: datetime,
    ) -> Tuple[VisitRecord, VisitRecord]:
        """
        Move a visit to another date.

        The original visit is kept and marked Rescheduled; a new Scheduled visit
        is produced on `new_date` pointing back at it via `original_visit_id`.

        Returns:
            (updated original visit, new visit)

        Raises:
            InvalidStatusTransition: If the visit is Cancelled or already diagnosed
        """
        if visit.status is VisitStatus.CANCELLED or visit.has_diagnosis:
            raise InvalidStatusTransition(
                f"Cannot reschedule visit {visit.id} with status {visit.status.value}",
                from_status=visit.status.value,
                to_status=VisitStatus.RESCHEDULED.value,
            )

        target = coerce_date(new_date)
        moved_from = f"Rescheduled from {visit.date.isoformat()}"
        new_visit = VisitRecord(
            patient_id=visit.patient_id,
            date=target,
            status=VisitStatus.SCHEDULED,
            type=visit.type,
            reason=visit.reason,
            notes=f"{moved_from}. Reason: {reason}" if reason else moved_from,
            created_by=StaffRole(acting_role),
            created_at=now,
            updated_at=now,
            original_visit_id=visit.id,
        )

        notes = visit.notes
        if reason:
            notes = _append_note(notes, f"Rescheduled reason: {reason}")
        original = replace(visit, status=VisitStatus.RESCHEDULED, notes=notes, updated_at=now)

        logger.info(f"Visit {visit.id} rescheduled from {visit.date} to {target}")
        return original, new_visit

    @staticmethod
    def set_status(visit: VisitRecord, status: VisitStatus | str, now: datetime) -> VisitRecord:
        """
        Change the stored status directly (front-desk status picker).

        Raises:
            InvalidStatusTransition: If leaving Cancelled, storing a derived-only
                status, or dropping Completed while a diagnosis is attached
            ValueError: If `status` is not a known literal
        """
        target = VisitStatus(status)

        if target is visit.status:
            return visit

        if visit.status is VisitStatus.CANCELLED:
            raise InvalidStatusTransition(
                f"Visit {visit.id} is cancelled; cancellation cannot be undone",
                from_status=visit.status.value,
                to_status=target.value,
            )

        if target not in STORABLE_VISIT_STATUSES:
            raise InvalidStatusTransition(
                f"Status '{target.value}' is derived and cannot be stored",
                from_status=visit.status.value,
                to_status=target.value,
            )

        if target is VisitStatus.CANCELLED:
            return VisitLifecycle.cancel(visit, None, now)

        if visit.has_diagnosis:
            raise InvalidStatusTransition(
                f"Visit {visit.id} has a diagnosis and must stay Completed",
                from_status=visit.status.value,
                to_status=target.value,
            )

        logger.info(f"Visit {visit.id}: {visit.status.value} -> {target.value}")
        return replace(visit, status=target, updated_at=now)

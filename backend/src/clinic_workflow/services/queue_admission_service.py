"""
Same-day queue admission.

Checking a patient in either links an appointment they already have today or
creates a walk-in visit for them. Nothing is persisted here; the caller saves
the new visit (if any) and stores the queue entry.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from clinic_workflow.core.constants import (
    DEFAULT_VISIT_TYPE,
    DEFAULT_WALK_IN_REASON,
    StaffRole,
    VisitStatus,
)
from clinic_workflow.core.exceptions import InvalidPatientReference
from clinic_workflow.records.patient import PatientRecord
from clinic_workflow.records.queue import QueueEntry
from clinic_workflow.records.visit import VisitRecord
from clinic_workflow.services.status_service import is_open
from clinic_workflow.utils.datetime_utils import clinic_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admission:
    """Result of a check-in."""
    visit: VisitRecord
    queue_entry: QueueEntry
    is_new_visit: bool


class QueueAdmission:
    """Admits patients into today's queue."""

    @staticmethod
    def candidates(patient_id: int, visits_for_today: Sequence[VisitRecord], now: datetime) -> List[VisitRecord]:
        """
        Visits that a check-in may link to, in input order.

        A candidate belongs to the patient, is dated today and is still open
        (effective status neither Completed nor Cancelled).
        """
        today = clinic_today(now)
        return [
            visit for visit in visits_for_today
            if visit.patient_id == patient_id and visit.date == today and is_open(visit, now)
        ]

    @staticmethod
    def admit(
        patient: Optional[PatientRecord],
        visits_for_today: Sequence[VisitRecord],
        is_walk_in: bool,
        reason: Optional[str],
        acting_role: StaffRole | str,
        now: datetime,
        notes: Optional[str] = None,
    ) -> Admission:
        """
        Admit a patient into today's queue.

        A scheduled arrival links the first open visit the patient has today.
        A walk-in, or an arrival with nothing to link, gets a new Scheduled
        visit dated today.

        Args:
            patient: Patient being checked in
            visits_for_today: Visits loaded for today (may include other patients)
            is_walk_in: True when the desk marked the patient as a walk-in
            reason: Visit reason; defaults to "Walk-in visit" for new visits
            acting_role: Role performing the check-in
            now: Current instant
            notes: Free-text notes for the queue entry and a new visit

        Returns:
            Admission with the linked or new visit and its queue entry

        Raises:
            InvalidPatientReference: If patient is missing or has no id
        """
        if patient is None or patient.id is None:
            raise InvalidPatientReference(patient_id=patient.id if patient is not None else None)

        role = StaffRole(acting_role)

        if not is_walk_in:
            matches = QueueAdmission.candidates(patient.id, visits_for_today, now)
            if matches:
                visit = matches[0]
                logger.info(f"Patient {patient.id} checked in for existing visit {visit.id}")
                entry = QueueEntry(
                    patient_id=patient.id,
                    patient_name=patient.display_name,
                    is_walk_in=False,
                    linked_visit_id=visit.id,
                    reason=visit.reason,
                    notes=notes,
                )
                return Admission(visit=visit, queue_entry=entry, is_new_visit=False)

        visit_reason = reason or DEFAULT_WALK_IN_REASON
        visit = VisitRecord(
            patient_id=patient.id,
            date=clinic_today(now),
            status=VisitStatus.SCHEDULED,
            type=DEFAULT_VISIT_TYPE,
            reason=visit_reason,
            notes=notes,
            created_by=role,
            created_at=now,
            updated_at=now,
        )
        logger.info(
            f"Patient {patient.id} admitted as walk-in"
            + ("" if is_walk_in else " (no open visit today)")
        )
        entry = QueueEntry(
            patient_id=patient.id,
            patient_name=patient.display_name,
            is_walk_in=True,
            reason=visit_reason,
            notes=notes,
        )
        return Admission(visit=visit, queue_entry=entry, is_new_visit=True)

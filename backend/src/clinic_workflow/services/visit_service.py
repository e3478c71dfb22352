"""
Visit service for booking, check-in and clinical notes.

Loads snapshots from the store, runs them through the pure lifecycle and
history components with the current time, and saves the result. It also
keeps the day's queue, which is working state and is never persisted.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from clinic_workflow.core.constants import DEFAULT_VISIT_TYPE, StaffRole, VisitStatus
from clinic_workflow.core.exceptions import InvalidPatientReference, VisitNotFound
from clinic_workflow.records.diagnosis import Diagnosis
from clinic_workflow.records.visit import VisitRecord
from clinic_workflow.services.clinic_store import ClinicStore
from clinic_workflow.services.daily_queue import DailyQueue
from clinic_workflow.services.diagnosis_history_service import DiagnosisHistory
from clinic_workflow.services.queue_admission_service import Admission, QueueAdmission
from clinic_workflow.services.visit_classifier_service import VisitBuckets, classify
from clinic_workflow.services.visit_lifecycle_service import VisitLifecycle
from clinic_workflow.utils.datetime_utils import Clock, clinic_now, clinic_today, coerce_date

logger = logging.getLogger(__name__)


class VisitService:
    """
    Service class for visit operations.

    Args:
        store: Persistence collaborator
        clock: Source of the current instant (clinic time zone by default)
    """

    def __init__(self, store: ClinicStore, clock: Clock = clinic_now):
        self.store = store
        self.clock = clock
        self._queues: Dict[date, DailyQueue] = {}

    def get_visit(self, visit_id: int) -> VisitRecord:
        """
        Raises:
            VisitNotFound: If the visit does not exist
        """
        visit = self.store.load_visit(visit_id)
        if visit is None:
            raise VisitNotFound(visit_id)
        return visit

    def book_visit(
        self,
        patient_id: int,
        visit_date: date | datetime | str,
        acting_role: StaffRole | str,
        visit_type: str = DEFAULT_VISIT_TYPE,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> VisitRecord:
        """
        Book a Scheduled visit for a patient.

        Raises:
            InvalidPatientReference: If the patient does not exist
        """
        if self.store.load_patient(patient_id) is None:
            raise InvalidPatientReference(f"Patient {patient_id} not found", patient_id=patient_id)

        now = self.clock()
        visit = VisitRecord(
            patient_id=patient_id,
            date=coerce_date(visit_date),
            status=VisitStatus.SCHEDULED,
            type=visit_type,
            reason=reason,
            notes=notes,
            created_by=StaffRole(acting_role),
            created_at=now,
            updated_at=now,
        )
        saved = self.store.save_visit(visit)
        logger.info(f"Booked visit {saved.id} for patient {patient_id} on {saved.date}")
        return saved

    # ===== Diagnoses =====

    def record_diagnosis(
        self,
        visit_id: int,
        diagnosis: "Diagnosis | Mapping[str, Any] | str",
    ) -> VisitRecord:
        """
        Save a clinical note on a visit.

        The first note creates the current diagnosis; later notes supersede it
        and keep the earlier ones in the history. The visit becomes Completed,
        and its queue entry (if queued today) is marked done.

        Raises:
            VisitNotFound: If the visit does not exist
            InvalidStatusTransition: If the visit is Cancelled
            pydantic.ValidationError: If the payload does not match the schema
        """
        visit = self.get_visit(visit_id)
        now = self.clock()
        saved = self.store.save_visit(DiagnosisHistory.attach(visit, diagnosis, now))

        queue = self._queues.get(saved.date)
        if queue is not None and saved.id in queue:
            queue.complete(saved.id, now)  # type: ignore[arg-type]
        return saved

    def remove_diagnosis(self, visit_id: int, diagnosis_id: str) -> VisitRecord:
        """
        Delete one diagnosis from a visit.

        Raises:
            VisitNotFound: If the visit does not exist
            DiagnosisNotFound: If the diagnosis is not attached to the visit
        """
        visit = self.get_visit(visit_id)
        return self.store.save_visit(DiagnosisHistory.remove(visit, diagnosis_id, self.clock()))

    def diagnosis_timeline(self, patient_id: int) -> List[Tuple[VisitRecord, Diagnosis]]:
        """Every diagnosis across the patient's visits, most recently updated first."""
        return DiagnosisHistory.patient_timeline(self.store.load_visits_for_patient(patient_id))

    # ===== Status transitions =====

    def cancel_visit(self, visit_id: int, reason: Optional[str] = None) -> VisitRecord:
        """
        Cancel a visit and take it out of the queue.

        Raises:
            VisitNotFound: If the visit does not exist
            InvalidStatusTransition: If the visit already has a diagnosis
        """
        visit = self.get_visit(visit_id)
        cancelled = VisitLifecycle.cancel(visit, reason, self.clock())
        if cancelled is visit:
            return visit

        saved = self.store.save_visit(cancelled)
        queue = self._queues.get(saved.date)
        if queue is not None and saved.id in queue:
            queue.remove(saved.id)  # type: ignore[arg-type]
        return saved

    def reschedule_visit(
        self,
        visit_id: int,
        new_date: date | datetime | str,
        acting_role: StaffRole | str,
        reason: Optional[str] = None,
    ) -> Tuple[VisitRecord, VisitRecord]:
        """
        Move a visit to another date.

        Returns:
            (original visit now Rescheduled, new Scheduled visit)

        Raises:
            VisitNotFound: If the visit does not exist
            InvalidStatusTransition: If the visit is Cancelled or already diagnosed
        """
        visit = self.get_visit(visit_id)
        original, moved = VisitLifecycle.reschedule(visit, new_date, reason, acting_role, self.clock())
        # Both visits are written in one commit
        saved_original, saved_moved = self.store.save_visits([original, moved])
        return saved_original, saved_moved

    def set_visit_status(self, visit_id: int, status: VisitStatus | str) -> VisitRecord:
        """
        Change a visit's stored status directly.

        Raises:
            VisitNotFound: If the visit does not exist
            InvalidStatusTransition: If the change is not allowed
        """
        visit = self.get_visit(visit_id)
        updated = VisitLifecycle.set_status(visit, status, self.clock())
        if updated is visit:
            return visit
        return self.store.save_visit(updated)

    # ===== Queue =====

    def queue_for(self, day: Optional[date] = None) -> DailyQueue:
        """
        The queue for `day` (today by default), created on first use.

        Queues for days before today are dropped.
        """
        today = clinic_today(self.clock())
        for stale in [d for d in self._queues if d < today]:
            del self._queues[stale]
            logger.info(f"Dropped queue for {stale}")

        day = day or today
        if day not in self._queues:
            self._queues[day] = DailyQueue(day)
        return self._queues[day]

    def check_in(
        self,
        patient_id: int,
        acting_role: StaffRole | str,
        is_walk_in: bool = False,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Admission:
        """
        Check a patient in and put them in today's queue.

        Links the patient's open visit for today when they have one, otherwise
        books a walk-in visit. The returned admission carries the saved visit
        and the queued entry.

        Raises:
            InvalidPatientReference: If the patient does not exist
        """
        now = self.clock()
        today = clinic_today(now)
        patient = self.store.load_patient(patient_id)
        if patient is None:
            raise InvalidPatientReference(f"Patient {patient_id} not found", patient_id=patient_id)

        admission = QueueAdmission.admit(
            patient,
            self.store.load_visits_for_date(today),
            is_walk_in,
            reason,
            acting_role,
            now,
            notes=notes,
        )

        visit = admission.visit
        entry = admission.queue_entry
        if admission.is_new_visit:
            visit = self.store.save_visit(visit)
            entry = replace(entry, linked_visit_id=visit.id)

        queued = self.queue_for(today).add(entry, now)
        return Admission(visit=visit, queue_entry=queued, is_new_visit=admission.is_new_visit)

    # ===== Views =====

    def visits_overview(self, patient_id: int) -> VisitBuckets:
        """A patient's visits split into today / upcoming / past / needs diagnosis."""
        return classify(self.store.load_visits_for_patient(patient_id), self.clock())

    def todays_visits(self) -> List[VisitRecord]:
        """All visits booked for today, in booking order."""
        return self.store.load_visits_for_date(clinic_today(self.clock()))

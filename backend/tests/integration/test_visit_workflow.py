"""
Visit workflow integration tests.

Tests booking, check-in, diagnosis history, cancellation and rescheduling
through VisitService with a real store and a fixed clock.
"""

import pytest
from datetime import date, timedelta

from pydantic import ValidationError

from clinic_workflow.core.constants import StaffRole, VisitStatus
from clinic_workflow.core.exceptions import (
    DiagnosisNotFound,
    InvalidPatientReference,
    InvalidStatusTransition,
    VisitNotFound,
)
from clinic_workflow.services.status_service import effective_status

TODAY = date(2024, 1, 5)


class TestBooking:

    def test_book_visit(self, visit_service, saved_patient, clock):
        visit = visit_service.book_visit(saved_patient.id, "2024-01-09", "visitor", reason="Rash")

        assert visit.id is not None
        assert visit.date == date(2024, 1, 9)
        assert visit.status is VisitStatus.SCHEDULED
        assert visit.created_by is StaffRole.VISITOR
        assert visit.created_at == clock.now

    def test_book_for_unknown_patient(self, visit_service):
        with pytest.raises(InvalidPatientReference):
            visit_service.book_visit(999, TODAY, "secretary")

    def test_get_unknown_visit(self, visit_service):
        with pytest.raises(VisitNotFound):
            visit_service.get_visit(999)


class TestCheckIn:

    def test_scheduled_patient_links_booking(self, visit_service, saved_patient):
        booked = visit_service.book_visit(saved_patient.id, TODAY, "secretary")

        admission = visit_service.check_in(saved_patient.id, "secretary")

        assert admission.is_new_visit is False
        assert admission.visit.id == booked.id
        assert admission.queue_entry.linked_visit_id == booked.id
        assert admission.queue_entry.queue_number == 1
        assert len(visit_service.todays_visits()) == 1

    def test_walk_in_creates_visit_even_with_booking(self, visit_service, saved_patient):
        visit_service.book_visit(saved_patient.id, TODAY, "secretary")

        admission = visit_service.check_in(saved_patient.id, "secretary", is_walk_in=True, reason="Fever")

        assert admission.is_new_visit is True
        assert admission.visit.id is not None
        assert admission.visit.reason == "Fever"
        assert admission.queue_entry.is_walk_in is True
        assert admission.queue_entry.linked_visit_id == admission.visit.id
        assert len(visit_service.todays_visits()) == 2

    def test_no_booking_becomes_walk_in(self, visit_service, saved_patient):
        visit_service.book_visit(saved_patient.id, TODAY + timedelta(days=1), "secretary")

        admission = visit_service.check_in(saved_patient.id, StaffRole.DOCTOR)

        assert admission.is_new_visit is True
        assert admission.visit.reason == "Walk-in visit"
        assert admission.visit.created_by is StaffRole.DOCTOR

    def test_unknown_patient(self, visit_service):
        with pytest.raises(InvalidPatientReference):
            visit_service.check_in(999, "secretary")

    def test_queue_order_and_completion(self, visit_service, store, saved_patient):
        first = visit_service.check_in(saved_patient.id, "secretary", is_walk_in=True)
        second = visit_service.check_in(saved_patient.id, "secretary", is_walk_in=True)

        visit_service.record_diagnosis(first.visit.id, {"diagnosis": "Flu"})

        queue = visit_service.queue_for()
        assert [e.linked_visit_id for e in queue.active()] == [second.visit.id]
        assert [e.linked_visit_id for e in queue.entries()] == [second.visit.id, first.visit.id]

    def test_new_day_starts_with_empty_queue(self, visit_service, saved_patient, clock):
        yesterday = visit_service.check_in(saved_patient.id, "secretary", is_walk_in=True)
        clock.advance(days=1)

        today_queue = visit_service.queue_for()

        assert len(today_queue) == 0
        assert yesterday.visit.id not in today_queue
        assert list(visit_service._queues) == [TODAY + timedelta(days=1)]


class TestDiagnoses:

    def test_first_then_second_diagnosis(self, visit_service, saved_patient, clock):
        visit = visit_service.book_visit(saved_patient.id, TODAY, "secretary")

        visit_service.record_diagnosis(visit.id, {"diagnosis": "Flu", "treatment": "Rest"})
        clock.advance(minutes=20)
        visit = visit_service.record_diagnosis(visit.id, {"diagnosis": "Bronchitis", "followUp": "1 week"})

        assert visit.status is VisitStatus.COMPLETED
        assert visit.diagnosis.diagnosis == "Bronchitis"
        assert visit.diagnosis.updated_at == clock.now
        assert [d.diagnosis for d in visit.diagnoses] == ["Flu"]

    def test_invalid_payload_rejected(self, visit_service, saved_patient):
        visit = visit_service.book_visit(saved_patient.id, TODAY, "secretary")
        with pytest.raises(ValidationError):
            visit_service.record_diagnosis(visit.id, {"diagnosis": "Flu", "severity": 3})

    def test_cancelled_visit_rejects_diagnosis(self, visit_service, saved_patient):
        visit = visit_service.book_visit(saved_patient.id, TODAY, "secretary")
        visit_service.cancel_visit(visit.id)

        with pytest.raises(InvalidStatusTransition):
            visit_service.record_diagnosis(visit.id, {"diagnosis": "Flu"})

    def test_remove_diagnosis(self, visit_service, saved_patient):
        visit = visit_service.book_visit(saved_patient.id, TODAY, "secretary")
        visit_service.record_diagnosis(visit.id, {"id": "first", "diagnosis": "Flu"})
        visit_service.record_diagnosis(visit.id, {"id": "second", "diagnosis": "Cold"})

        visit = visit_service.remove_diagnosis(visit.id, "second")

        assert visit.diagnosis.id == "first"
        assert visit.diagnoses == ()
        with pytest.raises(DiagnosisNotFound):
            visit_service.remove_diagnosis(visit.id, "second")

    def test_same_diagnosis_id_on_two_visits(self, visit_service, saved_patient):
        first = visit_service.book_visit(saved_patient.id, TODAY, "secretary")
        second = visit_service.book_visit(saved_patient.id, TODAY, "secretary")

        visit_service.record_diagnosis(first.id, {"id": "shared", "diagnosis": "Flu"})
        second = visit_service.record_diagnosis(second.id, {"id": "shared", "diagnosis": "Cold"})

        assert second.diagnosis.diagnosis == "Cold"
        assert visit_service.get_visit(first.id).diagnosis.id == "shared"
        visit = visit_service.remove_diagnosis(second.id, second.diagnosis.id)
        assert visit.diagnosis is None

    def test_diagnosis_timeline(self, visit_service, saved_patient, clock):
        older = visit_service.book_visit(saved_patient.id, TODAY - timedelta(days=7), "secretary")
        newer = visit_service.book_visit(saved_patient.id, TODAY, "secretary")

        visit_service.record_diagnosis(older.id, {"diagnosis": "Sprain"})
        clock.advance(minutes=5)
        visit_service.record_diagnosis(newer.id, {"diagnosis": "Flu"})
        clock.advance(minutes=5)
        visit_service.record_diagnosis(older.id, {"diagnosis": "Sprain, healing"})

        timeline = visit_service.diagnosis_timeline(saved_patient.id)

        assert [d.diagnosis for _, d in timeline] == ["Sprain, healing", "Flu", "Sprain"]
        assert timeline[1][0].id == newer.id


class TestStatusChanges:

    def test_cancel_with_reason(self, visit_service, saved_patient):
        visit = visit_service.book_visit(saved_patient.id, TODAY, "secretary", notes="Fasting")

        cancelled = visit_service.cancel_visit(visit.id, "Sick child")

        assert cancelled.status is VisitStatus.CANCELLED
        assert cancelled.notes == "Fasting\nCancellation reason: Sick child"

    def test_cancel_removes_from_queue(self, visit_service, saved_patient):
        admission = visit_service.check_in(saved_patient.id, "secretary", is_walk_in=True)

        visit_service.cancel_visit(admission.visit.id)

        assert admission.visit.id not in visit_service.queue_for()

    def test_uncancel_rejected(self, visit_service, saved_patient):
        visit = visit_service.book_visit(saved_patient.id, TODAY, "secretary")
        visit_service.cancel_visit(visit.id)

        with pytest.raises(InvalidStatusTransition):
            visit_service.set_visit_status(visit.id, "Scheduled")

    def test_set_status(self, visit_service, saved_patient):
        visit = visit_service.book_visit(saved_patient.id, TODAY, "secretary")
        assert visit_service.set_visit_status(visit.id, "Pending").status is VisitStatus.PENDING

    def test_reschedule(self, visit_service, saved_patient):
        visit = visit_service.book_visit(saved_patient.id, TODAY, "secretary", reason="Check-up")

        original, moved = visit_service.reschedule_visit(visit.id, "2024-01-12", "secretary", reason="Clinic closed")

        assert original.status is VisitStatus.RESCHEDULED
        assert moved.id is not None and moved.id != original.id
        assert moved.original_visit_id == original.id
        assert moved.date == date(2024, 1, 12)
        assert visit_service.get_visit(moved.id).notes == "Rescheduled from 2024-01-05. Reason: Clinic closed"


class TestViews:

    def test_visits_overview(self, visit_service, saved_patient, clock):
        past = visit_service.book_visit(saved_patient.id, TODAY - timedelta(days=4), "secretary")
        seen = visit_service.book_visit(saved_patient.id, TODAY - timedelta(days=2), "secretary")
        today = visit_service.book_visit(saved_patient.id, TODAY, "secretary")
        upcoming = visit_service.book_visit(saved_patient.id, TODAY + timedelta(days=3), "secretary")
        visit_service.record_diagnosis(seen.id, {"diagnosis": "Flu"})

        buckets = visit_service.visits_overview(saved_patient.id)

        assert [v.id for v in buckets.today] == [today.id]
        assert [v.id for v in buckets.upcoming] == [upcoming.id]
        assert [v.id for v in buckets.past] == [seen.id, past.id]
        assert [v.id for v in buckets.needs_diagnosis] == [past.id]
        assert effective_status(buckets.past[1], clock.now) is VisitStatus.NEEDS_DIAGNOSIS

    def test_status_derivation_does_not_write(self, visit_service, store, saved_patient):
        past = visit_service.book_visit(saved_patient.id, TODAY - timedelta(days=4), "secretary")

        visit_service.visits_overview(saved_patient.id)

        stored = store.load_visit(past.id)
        assert stored.status is VisitStatus.SCHEDULED
        assert stored.version == past.version

"""
Unit tests for same-day queue admission.
"""

import pytest
from datetime import date, datetime, timezone

from clinic_workflow.core.constants import StaffRole, VisitStatus
from clinic_workflow.core.exceptions import InvalidPatientReference
from clinic_workflow.records import PatientRecord
from clinic_workflow.services.queue_admission_service import QueueAdmission

NOW = datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)
TODAY = date(2024, 1, 5)


@pytest.fixture
def patient() -> PatientRecord:
    return PatientRecord(id=1, first_name="Lina", last_name="Farouk")


class TestAdmit:

    def test_scheduled_arrival_links_existing_visit(self, patient, make_visit):
        booked = make_visit(id=10, reason="Check-up")

        admission = QueueAdmission.admit(patient, [booked], False, None, StaffRole.SECRETARY, NOW)

        assert admission.is_new_visit is False
        assert admission.visit is booked
        assert admission.queue_entry.linked_visit_id == 10
        assert admission.queue_entry.is_walk_in is False
        assert admission.queue_entry.patient_name == "Lina Farouk"

    def test_links_first_candidate_in_input_order(self, patient, make_visit):
        visits = [make_visit(id=12), make_visit(id=11)]

        admission = QueueAdmission.admit(patient, visits, False, None, "secretary", NOW)

        assert admission.visit.id == 12

    def test_walk_in_always_creates_a_visit(self, patient, make_visit):
        admission = QueueAdmission.admit(patient, [make_visit(id=10)], True, "Fever", "secretary", NOW)

        assert admission.is_new_visit is True
        assert admission.visit.id is None
        assert admission.visit.reason == "Fever"
        assert admission.queue_entry.is_walk_in is True
        assert admission.queue_entry.linked_visit_id is None

    def test_new_visit_defaults(self, patient):
        admission = QueueAdmission.admit(patient, [], False, None, StaffRole.DOCTOR, NOW, notes="Came early")

        visit = admission.visit
        assert visit.date == TODAY
        assert visit.type == "Consultation"
        assert visit.reason == "Walk-in visit"
        assert visit.status is VisitStatus.SCHEDULED
        assert visit.created_by is StaffRole.DOCTOR
        assert visit.created_at == NOW and visit.updated_at == NOW
        assert visit.notes == "Came early"
        assert admission.queue_entry.is_walk_in is True

    @pytest.mark.parametrize("overrides", [
        {"patient_id": 2},
        {"date": date(2024, 1, 6)},
        {"date": date(2024, 1, 4)},
        {"status": VisitStatus.CANCELLED},
    ])
    def test_non_candidates_are_ignored(self, patient, make_visit, overrides):
        admission = QueueAdmission.admit(patient, [make_visit(id=10, **overrides)], False, None, "secretary", NOW)

        assert admission.is_new_visit is True
        assert admission.queue_entry.is_walk_in is True

    def test_missing_patient(self):
        with pytest.raises(InvalidPatientReference):
            QueueAdmission.admit(None, [], False, None, "secretary", NOW)

    def test_patient_without_id(self):
        with pytest.raises(InvalidPatientReference):
            QueueAdmission.admit(PatientRecord(name="New"), [], True, None, "secretary", NOW)

    def test_diagnosed_visit_is_not_linked(self, patient, make_visit, make_diagnosis):
        seen = make_visit(id=10, status=VisitStatus.COMPLETED, diagnosis=make_diagnosis())

        admission = QueueAdmission.admit(patient, [seen], False, None, "secretary", NOW)

        assert admission.is_new_visit is True

"""
Property-based tests for the workflow engine.

These tests verify invariants that must always hold true, regardless of
input data. Uses Hypothesis for property-based testing.
"""

from datetime import date, datetime, timedelta, timezone
from typing import List

from hypothesis import given, settings, strategies as st

from clinic_workflow.core.constants import SECRETARY_EDIT_WINDOW_MS, StaffRole, VisitStatus
from clinic_workflow.records import Diagnosis, PatientRecord, VisitRecord
from clinic_workflow.services.diagnosis_history_service import DiagnosisHistory
from clinic_workflow.services.edit_window_service import EditWindowGuard
from clinic_workflow.services.queue_admission_service import QueueAdmission
from clinic_workflow.services.status_service import derive_status, effective_status
from clinic_workflow.services.visit_classifier_service import classify
from clinic_workflow.utils.datetime_utils import clinic_today

STORED = [s for s in VisitStatus if s is not VisitStatus.NEEDS_DIAGNOSIS]

dates = st.dates(min_value=date(2020, 1, 1), max_value=date(2030, 12, 31))
instants = st.datetimes(
    min_value=datetime(2020, 1, 1),
    max_value=datetime(2030, 12, 31),
    timezones=st.just(timezone.utc),
)
diagnoses = st.builds(
    Diagnosis,
    notes=st.text(max_size=20),
    diagnosis=st.text(min_size=1, max_size=20).filter(lambda s: s.strip()),
    treatment=st.text(max_size=20),
)


def visit_strategy(patient_ids=st.integers(min_value=1, max_value=3)):
    return st.builds(
        VisitRecord,
        patient_id=patient_ids,
        date=dates,
        status=st.sampled_from(STORED),
        id=st.integers(min_value=1, max_value=10_000),
    )


class TestStatusInvariants:

    @given(visit_date=dates, has_diagnosis=st.booleans(), now=instants)
    def test_cancelled_is_sticky(self, visit_date, has_diagnosis, now):
        assert derive_status(VisitStatus.CANCELLED, visit_date, has_diagnosis, now) is VisitStatus.CANCELLED

    @given(stored=st.sampled_from(STORED), visit_date=dates, now=instants)
    def test_diagnosis_completes_unless_cancelled(self, stored, visit_date, now):
        expected = VisitStatus.CANCELLED if stored is VisitStatus.CANCELLED else VisitStatus.COMPLETED
        assert derive_status(stored, visit_date, True, now) is expected

    @given(stored=st.sampled_from(STORED), visit_date=dates, has_diagnosis=st.booleans(), now=instants)
    def test_derivation_is_deterministic(self, stored, visit_date, has_diagnosis, now):
        first = derive_status(stored, visit_date, has_diagnosis, now)
        assert derive_status(stored, visit_date, has_diagnosis, now) is first

    @given(stored=st.sampled_from(STORED), visit_date=dates, has_diagnosis=st.booleans(), now=instants)
    def test_needs_diagnosis_only_for_past_visits(self, stored, visit_date, has_diagnosis, now):
        if derive_status(stored, visit_date, has_diagnosis, now) is VisitStatus.NEEDS_DIAGNOSIS:
            assert visit_date < clinic_today(now)
            assert not has_diagnosis


class TestDiagnosisHistoryInvariants:

    @given(notes=st.lists(diagnoses, min_size=1, max_size=6, unique_by=lambda d: d.id))
    @settings(max_examples=50)
    def test_history_is_reverse_attachment_order(self, notes: List[Diagnosis]):
        now = datetime(2024, 1, 5, 12, tzinfo=timezone.utc)
        visit = VisitRecord(patient_id=1, date=date(2024, 1, 5))

        for diagnosis in notes:
            visit = DiagnosisHistory.attach(visit, diagnosis, now)

        assert visit.diagnosis.id == notes[-1].id
        assert [d.id for d in visit.diagnoses] == [d.id for d in reversed(notes[:-1])]
        assert visit.diagnosis.id not in {d.id for d in visit.diagnoses}
        assert effective_status(visit, now) is VisitStatus.COMPLETED


class TestEditWindowInvariants:

    @given(elapsed=st.integers(min_value=0, max_value=3 * SECRETARY_EDIT_WINDOW_MS))
    def test_secretary_window_boundary(self, elapsed):
        created = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
        patient = PatientRecord(id=1, name="P", created_by=StaffRole.SECRETARY, created_at=created)
        now = created + timedelta(milliseconds=elapsed)

        assert EditWindowGuard.can_edit(patient, StaffRole.SECRETARY, now) == (elapsed <= SECRETARY_EDIT_WINDOW_MS)
        assert EditWindowGuard.can_edit(patient, StaffRole.DOCTOR, now)

    @given(creator=st.sampled_from([StaffRole.DOCTOR, StaffRole.VISITOR, StaffRole.ADMIN]),
           role=st.sampled_from(list(StaffRole)), now=instants)
    def test_non_secretary_records_always_editable(self, creator, role, now):
        patient = PatientRecord(id=1, name="P", created_by=creator, created_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
        assert EditWindowGuard.can_edit(patient, role, now)


class TestClassificationInvariants:

    @given(visits=st.lists(visit_strategy(), max_size=15), now=instants)
    @settings(max_examples=50)
    def test_partition(self, visits, now):
        buckets = classify(visits, now)

        primary = buckets.today + buckets.upcoming + buckets.past
        assert sorted(map(id, primary)) == sorted(map(id, visits))

        past_or_today = {id(v) for v in buckets.past + buckets.today}
        assert all(id(v) in past_or_today for v in buckets.needs_diagnosis)

        assert [v.date for v in buckets.upcoming] == sorted(v.date for v in buckets.upcoming)
        assert [v.date for v in buckets.past] == sorted((v.date for v in buckets.past), reverse=True)


class TestAdmissionInvariants:

    @given(visits=st.lists(visit_strategy(), max_size=8), reason=st.one_of(st.none(), st.text(max_size=10)))
    @settings(max_examples=50)
    def test_walk_in_always_creates_exactly_one_visit(self, visits, reason):
        now = datetime(2024, 1, 5, 12, tzinfo=timezone.utc)
        patient = PatientRecord(id=1, name="P")

        admission = QueueAdmission.admit(patient, visits, True, reason, StaffRole.SECRETARY, now)

        assert admission.is_new_visit
        assert admission.visit.id is None
        assert admission.queue_entry.is_walk_in

    @given(visits=st.lists(visit_strategy(), max_size=8))
    @settings(max_examples=50)
    def test_is_walk_in_iff_nothing_linked(self, visits):
        now = datetime(2024, 1, 5, 12, tzinfo=timezone.utc)
        patient = PatientRecord(id=1, name="P")

        admission = QueueAdmission.admit(patient, visits, False, None, StaffRole.SECRETARY, now)

        assert admission.queue_entry.is_walk_in == admission.is_new_visit
        if not admission.is_new_visit:
            assert admission.visit in visits
            assert admission.visit.date == clinic_today(now)

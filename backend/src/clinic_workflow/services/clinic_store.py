"""
Persistence collaborator for the workflow engine.

The engine only needs the small `ClinicStore` protocol below. This module
also ships `SqlAlchemyClinicStore`, a reference implementation on the ORM
models that maps rows to immutable records and back.

Saves are optimistic: a record carries the `version` it was loaded with,
and saving a record whose version no longer matches the row raises
RecordVersionConflictError instead of silently overwriting the newer data.
"""

import logging
from dataclasses import asdict
from datetime import date
from typing import Dict, List, Optional, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from clinic_workflow.core.constants import STORABLE_VISIT_STATUSES, StaffRole, VisitStatus
from clinic_workflow.core.exceptions import (
    ClinicWorkflowError,
    DiagnosisNotFound,
    InvalidPatientReference,
    InvalidStatusTransition,
    RecordVersionConflictError,
    VisitNotFound,
)
from clinic_workflow.models import DiagnosisEntry, Patient, Visit
from clinic_workflow.records.diagnosis import Diagnosis, DiagnosisFile, new_diagnosis_id
from clinic_workflow.records.patient import MedicalHistoryEntry, Medication, PatientRecord
from clinic_workflow.records.visit import VisitRecord
from clinic_workflow.utils.datetime_utils import ensure_clinic_tz

logger = logging.getLogger(__name__)


class ClinicStore(Protocol):
    """What the workflow services need from storage."""

    def load_patient(self, patient_id: int) -> Optional[PatientRecord]: ...

    def save_patient(self, patient: PatientRecord) -> PatientRecord: ...

    def load_visit(self, visit_id: int) -> Optional[VisitRecord]: ...

    def load_visits_for_patient(self, patient_id: int) -> List[VisitRecord]: ...

    def load_visits_for_date(self, day: date) -> List[VisitRecord]: ...

    def save_visit(self, visit: VisitRecord) -> VisitRecord: ...

    def save_visits(self, visits: Sequence[VisitRecord]) -> List[VisitRecord]: ...

    def delete_diagnosis(self, diagnosis_id: str) -> VisitRecord: ...


class SqlAlchemyClinicStore:
    """
    ClinicStore backed by a SQLAlchemy session.

    Every save commits. On a database error the session is rolled back and
    the error is re-raised.
    """

    def __init__(self, db: Session):
        self.db = db

    # ===== Patients =====

    def load_patient(self, patient_id: int) -> Optional[PatientRecord]:
        row = self.db.get(Patient, patient_id)
        return _patient_to_record(row) if row is not None else None

    def save_patient(self, patient: PatientRecord) -> PatientRecord:
        """
        Insert a new patient or update an existing one.

        Raises:
            InvalidPatientReference: If the patient has an id that does not exist
            RecordVersionConflictError: If the patient was changed since it was loaded
        """
        if patient.id is None:
            row = Patient(version=1)
            self.db.add(row)
        else:
            row = self.db.get(Patient, patient.id)
            if row is None:
                raise InvalidPatientReference(f"Patient {patient.id} not found", patient_id=patient.id)
            _check_version("Patient", row.id, row.version, patient.version)
            row.version += 1

        _apply_patient(row, patient)
        self._commit(f"save patient {patient.id}")
        logger.info(f"Saved patient {row.id} (version {row.version})")
        return _patient_to_record(row)

    # ===== Visits =====

    def load_visit(self, visit_id: int) -> Optional[VisitRecord]:
        row = self.db.get(Visit, visit_id)
        return _visit_to_record(row) if row is not None else None

    def load_visits_for_patient(self, patient_id: int) -> List[VisitRecord]:
        rows = self.db.scalars(
            select(Visit)
            .where(Visit.patient_id == patient_id)
            .options(selectinload(Visit.diagnosis_entries))
            .order_by(Visit.date, Visit.id)
        ).all()
        return [_visit_to_record(row) for row in rows]

    def load_visits_for_date(self, day: date) -> List[VisitRecord]:
        rows = self.db.scalars(
            select(Visit)
            .where(Visit.date == day)
            .options(selectinload(Visit.diagnosis_entries))
            .order_by(Visit.id)
        ).all()
        return [_visit_to_record(row) for row in rows]

    def save_visit(self, visit: VisitRecord) -> VisitRecord:
        """
        Insert a new visit or update an existing one, diagnoses included.

        Diagnosis rows are synchronised with the record: entries no longer
        attached are deleted, the rest are written with their position. A
        diagnosis whose id is already used by another visit is stored under
        a fresh id.

        Raises:
            InvalidStatusTransition: If the stored status would be a derived-only status
            InvalidPatientReference: If the visit's patient does not exist
            VisitNotFound: If the visit has an id that does not exist
            RecordVersionConflictError: If the visit was changed since it was loaded
        """
        return self.save_visits([visit])[0]

    def save_visits(self, visits: Sequence[VisitRecord]) -> List[VisitRecord]:
        """
        Save several visits in a single commit.

        Either every visit is saved or none is: when one of them is rejected
        the pending changes of the others are rolled back.

        Raises:
            Same as save_visit, for the first visit that is rejected
        """
        try:
            rows = [self._stage_visit(visit) for visit in visits]
        except ClinicWorkflowError:
            self.db.rollback()
            raise

        self._commit(f"save visits {[visit.id for visit in visits]}")
        for row in rows:
            logger.info(f"Saved visit {row.id} (version {row.version}, status {row.status})")
        return [_visit_to_record(row) for row in rows]

    def _stage_visit(self, visit: VisitRecord) -> Visit:
        if visit.status not in STORABLE_VISIT_STATUSES:
            raise InvalidStatusTransition(
                f"Status '{visit.status.value}' is derived and cannot be stored",
                to_status=visit.status.value,
            )

        if not visit.is_persisted:
            if self.db.get(Patient, visit.patient_id) is None:
                raise InvalidPatientReference(
                    f"Patient {visit.patient_id} not found", patient_id=visit.patient_id
                )
            row = Visit(version=1)
            self.db.add(row)
        else:
            row = self.db.get(Visit, visit.id)
            if row is None:
                raise VisitNotFound(visit.id)
            _check_version("Visit", row.id, row.version, visit.version)
            row.version += 1

        _apply_visit(row, visit)
        _sync_diagnoses(self.db, row, visit)
        return row

    def delete_diagnosis(self, diagnosis_id: str) -> VisitRecord:
        """
        Delete one diagnosis row and close the gap in its visit's history.

        Deleting the current diagnosis promotes the most recent superseded one.
        The visit's stored status is left as it is.

        Returns:
            The visit after the deletion

        Raises:
            DiagnosisNotFound: If no diagnosis has this id
        """
        entry = self.db.get(DiagnosisEntry, diagnosis_id)
        if entry is None:
            raise DiagnosisNotFound(diagnosis_id)

        row = entry.visit
        row.diagnosis_entries.remove(entry)
        remaining = sorted(row.diagnosis_entries, key=lambda e: e.position)
        # Position 0 only exists while there is a current diagnosis
        first = 0 if entry.position == 0 or (remaining and remaining[0].position == 0) else 1
        for offset, other in enumerate(remaining):
            other.position = first + offset
        row.version += 1

        self._commit(f"delete diagnosis {diagnosis_id}")
        logger.info(f"Deleted diagnosis {diagnosis_id} from visit {row.id}")
        return _visit_to_record(row)

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Failed to {action}: {e}")
            raise


def _check_version(kind: str, record_id: int, current: int, expected: int) -> None:
    if current != expected:
        logger.warning(
            f"{kind} {record_id} version conflict: expected {expected}, current {current}"
        )
        raise RecordVersionConflictError(
            f"{kind} has been modified by another user",
            record_id=record_id,
            expected_version=expected,
            current_version=current,
        )


# ===== Row <-> record mapping =====

def _apply_patient(row: Patient, patient: PatientRecord) -> None:
    row.name = patient.name
    row.first_name = patient.first_name
    row.last_name = patient.last_name
    row.gender = patient.gender
    row.year_of_birth = patient.year_of_birth
    row.birth_date = patient.birth_date
    row.phone = patient.phone
    row.email = patient.email
    row.address = patient.address
    row.next_of_kin_name = patient.next_of_kin_name
    row.next_of_kin_relationship = patient.next_of_kin_relationship
    row.next_of_kin_phone = patient.next_of_kin_phone
    row.allergies = list(patient.allergies)
    row.medications = [asdict(m) for m in patient.medications]
    row.medical_history = [asdict(h) for h in patient.medical_history]
    row.created_by = patient.created_by.value
    if patient.created_at is not None:
        row.created_at = ensure_clinic_tz(patient.created_at)  # type: ignore[assignment]
    if patient.updated_at is not None:
        row.updated_at = ensure_clinic_tz(patient.updated_at)  # type: ignore[assignment]


def _patient_to_record(row: Patient) -> PatientRecord:
    return PatientRecord(
        id=row.id,
        name=row.name,
        first_name=row.first_name,
        last_name=row.last_name,
        gender=row.gender,
        year_of_birth=row.year_of_birth,
        birth_date=row.birth_date,
        phone=row.phone,
        email=row.email,
        address=row.address,
        next_of_kin_name=row.next_of_kin_name,
        next_of_kin_relationship=row.next_of_kin_relationship,
        next_of_kin_phone=row.next_of_kin_phone,
        allergies=tuple(row.allergies or ()),
        medications=tuple(Medication(**m) for m in row.medications or ()),
        medical_history=tuple(MedicalHistoryEntry(**h) for h in row.medical_history or ()),
        created_by=StaffRole(row.created_by),
        created_at=ensure_clinic_tz(row.created_at),
        updated_at=ensure_clinic_tz(row.updated_at),
        version=row.version,
    )


def _apply_visit(row: Visit, visit: VisitRecord) -> None:
    row.patient_id = visit.patient_id
    row.date = visit.date
    row.appointment_time = visit.appointment_time
    row.type = visit.type
    row.reason = visit.reason
    row.notes = visit.notes
    row.status = visit.status.value
    row.created_by = visit.created_by.value
    row.original_visit_id = visit.original_visit_id
    if visit.created_at is not None:
        row.created_at = ensure_clinic_tz(visit.created_at)  # type: ignore[assignment]
    if visit.updated_at is not None:
        row.updated_at = ensure_clinic_tz(visit.updated_at)  # type: ignore[assignment]


def _sync_diagnoses(db: Session, row: Visit, visit: VisitRecord) -> None:
    wanted: List[tuple] = []
    if visit.diagnosis is not None:
        wanted.append((0, visit.diagnosis))
    wanted.extend((position, d) for position, d in enumerate(visit.diagnoses, start=1))

    wanted_ids = {d.id for _, d in wanted}
    existing: Dict[str, DiagnosisEntry] = {e.id: e for e in row.diagnosis_entries}

    for entry_id, entry in existing.items():
        if entry_id not in wanted_ids:
            row.diagnosis_entries.remove(entry)

    for position, diagnosis in wanted:
        entry = existing.get(diagnosis.id)
        if entry is None:
            entry_id = diagnosis.id
            # Diagnosis ids are unique across visits
            with db.no_autoflush:
                taken = db.get(DiagnosisEntry, entry_id) is not None
            if taken:
                entry_id = new_diagnosis_id()
                logger.warning(f"Diagnosis id {diagnosis.id} belongs to another visit; stored as {entry_id}")
            entry = DiagnosisEntry(id=entry_id)
            row.diagnosis_entries.append(entry)
        entry.position = position
        entry.notes = diagnosis.notes
        entry.diagnosis = diagnosis.diagnosis
        entry.treatment = diagnosis.treatment
        entry.follow_up = diagnosis.follow_up
        entry.files = [f.model_dump() for f in diagnosis.files]
        entry.recorded_at = ensure_clinic_tz(diagnosis.updated_at)


def _entry_to_diagnosis(entry: DiagnosisEntry) -> Diagnosis:
    return Diagnosis(
        id=entry.id,
        notes=entry.notes,
        diagnosis=entry.diagnosis,
        treatment=entry.treatment,
        follow_up=entry.follow_up,
        files=tuple(DiagnosisFile(**f) for f in entry.files or ()),
        updated_at=ensure_clinic_tz(entry.recorded_at),
    )


def _visit_to_record(row: Visit) -> VisitRecord:
    entries = sorted(row.diagnosis_entries, key=lambda e: e.position)
    current: Optional[Diagnosis] = None
    if entries and entries[0].position == 0:
        current = _entry_to_diagnosis(entries[0])
        entries = entries[1:]

    return VisitRecord(
        id=row.id,
        patient_id=row.patient_id,
        date=row.date,
        appointment_time=row.appointment_time,
        type=row.type,
        reason=row.reason,
        notes=row.notes,
        status=VisitStatus(row.status),
        created_by=StaffRole(row.created_by),
        original_visit_id=row.original_visit_id,
        created_at=ensure_clinic_tz(row.created_at),
        updated_at=ensure_clinic_tz(row.updated_at),
        version=row.version,
        diagnosis=current,
        diagnoses=tuple(_entry_to_diagnosis(e) for e in entries),
    )

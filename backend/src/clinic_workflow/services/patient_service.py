"""
Patient service for the front-desk and doctor workflows.

Registers patients and applies edits to their demographics and clinical
sub-records. Every mutation of an existing patient is checked against the
secretary edit window before it is saved.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from clinic_workflow.core.constants import StaffRole
from clinic_workflow.core.exceptions import InvalidPatientReference
from clinic_workflow.core.sentinels import MISSING
from clinic_workflow.records.patient import MedicalHistoryEntry, Medication, PatientRecord
from clinic_workflow.services.clinic_store import ClinicStore
from clinic_workflow.services.edit_window_service import EditWindowGuard
from clinic_workflow.utils.datetime_utils import Clock, clinic_now

logger = logging.getLogger(__name__)


def _dedupe_allergies(allergies: Iterable[str]) -> Tuple[str, ...]:
    """Trim, drop blanks and drop case-insensitive duplicates; first spelling wins."""
    seen = set()
    result = []
    for allergy in allergies:
        cleaned = allergy.strip()
        if cleaned and cleaned.casefold() not in seen:
            seen.add(cleaned.casefold())
            result.append(cleaned)
    return tuple(result)


def _as_medication(value: "Medication | Mapping[str, Any]") -> Medication:
    return value if isinstance(value, Medication) else Medication(**value)


def _as_history_entry(value: "MedicalHistoryEntry | Mapping[str, Any]") -> MedicalHistoryEntry:
    return value if isinstance(value, MedicalHistoryEntry) else MedicalHistoryEntry(**value)


class PatientService:
    """
    Service class for patient operations.

    Args:
        store: Persistence collaborator
        clock: Source of the current instant (clinic time zone by default)
    """

    def __init__(self, store: ClinicStore, clock: Clock = clinic_now):
        self.store = store
        self.clock = clock

    def get_patient(self, patient_id: int) -> PatientRecord:
        """
        Raises:
            InvalidPatientReference: If the patient does not exist
        """
        patient = self.store.load_patient(patient_id)
        if patient is None:
            raise InvalidPatientReference(f"Patient {patient_id} not found", patient_id=patient_id)
        return patient

    def register_patient(
        self,
        acting_role: StaffRole | str,
        name: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        allergies: Iterable[str] = (),
        medications: Iterable["Medication | Mapping[str, Any]"] = (),
        medical_history: Iterable["MedicalHistoryEntry | Mapping[str, Any]"] = (),
        **details: Any,
    ) -> PatientRecord:
        """
        Create a new patient record.

        The acting role is recorded as the creator, which decides whether the
        secretary edit window applies later on.

        Args:
            acting_role: Role registering the patient
            name: Full name (or give first_name/last_name)
            allergies: Allergy names; duplicates are dropped case-insensitively
            medications: Medication records or mappings
            medical_history: History entries or mappings
            **details: Remaining PatientRecord fields (phone, gender, ...)

        Returns:
            The saved patient

        Raises:
            ValueError: If no name is given
        """
        now = self.clock()
        patient = PatientRecord(
            name=name,
            first_name=first_name,
            last_name=last_name,
            allergies=_dedupe_allergies(allergies),
            medications=tuple(_as_medication(m) for m in medications),
            medical_history=tuple(_as_history_entry(h) for h in medical_history),
            created_by=StaffRole(acting_role),
            created_at=now,
            updated_at=now,
            **details,
        )
        if not patient.display_name:
            raise ValueError("Patient name is required")

        saved = self.store.save_patient(patient)
        logger.info(f"Registered patient {saved.id} by {saved.created_by.value}")
        return saved

    def edit_status(self, patient_id: int, acting_role: StaffRole | str) -> Dict[str, Any]:
        """
        Report whether the role may edit the patient right now.

        Returns:
            {"can_edit": bool, "minutes_remaining": int}. minutes_remaining is
            only meaningful for secretary-created records.
        """
        patient = self.get_patient(patient_id)
        now = self.clock()
        return {
            "can_edit": EditWindowGuard.can_edit(patient, acting_role, now),
            "minutes_remaining": EditWindowGuard.minutes_remaining(patient, now),
        }

    def update_patient(
        self,
        patient_id: int,
        acting_role: StaffRole | str,
        name: Any = MISSING,
        first_name: Any = MISSING,
        last_name: Any = MISSING,
        gender: Any = MISSING,
        year_of_birth: Any = MISSING,
        birth_date: Any = MISSING,
        phone: Any = MISSING,
        email: Any = MISSING,
        address: Any = MISSING,
        next_of_kin_name: Any = MISSING,
        next_of_kin_relationship: Any = MISSING,
        next_of_kin_phone: Any = MISSING,
        allergies: Any = MISSING,
        medications: Any = MISSING,
        medical_history: Any = MISSING,
    ) -> PatientRecord:
        """
        Update a patient.

        Only fields that are passed are changed; passing None clears a field.

        Raises:
            InvalidPatientReference: If the patient does not exist
            EditWindowExpired: If the role may no longer edit the patient
            ValueError: If the update would leave the patient without a name
            RecordVersionConflictError: If the patient changed concurrently
        """
        patient = self.get_patient(patient_id)
        now = self.clock()
        EditWindowGuard.ensure_can_edit(patient, acting_role, now)

        changes: Dict[str, Any] = {}
        scalar_fields = {
            "name": name,
            "first_name": first_name,
            "last_name": last_name,
            "gender": gender,
            "year_of_birth": year_of_birth,
            "birth_date": birth_date,
            "phone": phone,
            "email": email,
            "address": address,
            "next_of_kin_name": next_of_kin_name,
            "next_of_kin_relationship": next_of_kin_relationship,
            "next_of_kin_phone": next_of_kin_phone,
        }
        for field_name, value in scalar_fields.items():
            if value is not MISSING:
                changes[field_name] = value

        if allergies is not MISSING:
            changes["allergies"] = _dedupe_allergies(allergies or ())
        if medications is not MISSING:
            changes["medications"] = tuple(_as_medication(m) for m in medications or ())
        if medical_history is not MISSING:
            changes["medical_history"] = tuple(_as_history_entry(h) for h in medical_history or ())

        if not changes:
            return patient

        updated = replace(patient, updated_at=now, **changes)
        if not updated.display_name:
            raise ValueError("Patient name is required")

        saved = self.store.save_patient(updated)
        logger.info(f"Updated patient {patient_id}: {', '.join(sorted(changes))}")
        return saved

    # ===== Clinical sub-records =====

    def add_allergy(self, patient_id: int, allergy: str, acting_role: StaffRole | str) -> PatientRecord:
        """
        Add an allergy. Adding one already on file (in any letter case) is a no-op.

        Raises:
            ValueError: If the allergy is blank
            EditWindowExpired: If the role may no longer edit the patient
        """
        if not allergy or not allergy.strip():
            raise ValueError("Allergy cannot be empty")
        patient = self._editable(patient_id, acting_role)
        allergies = _dedupe_allergies(patient.allergies + (allergy,))
        if allergies == patient.allergies:
            return patient
        return self._save(patient, allergies=allergies)

    def remove_allergy(self, patient_id: int, allergy: str, acting_role: StaffRole | str) -> PatientRecord:
        """Remove an allergy by name (case-insensitive). Unknown names are a no-op."""
        patient = self._editable(patient_id, acting_role)
        target = allergy.strip().casefold()
        allergies = tuple(a for a in patient.allergies if a.casefold() != target)
        if allergies == patient.allergies:
            return patient
        return self._save(patient, allergies=allergies)

    def add_medication(
        self,
        patient_id: int,
        medication: "Medication | Mapping[str, Any]",
        acting_role: StaffRole | str,
    ) -> PatientRecord:
        patient = self._editable(patient_id, acting_role)
        return self._save(patient, medications=patient.medications + (_as_medication(medication),))

    def remove_medication(self, patient_id: int, index: int, acting_role: StaffRole | str) -> PatientRecord:
        """
        Remove the medication at `index` (display order).

        Raises:
            IndexError: If there is no medication at that index
        """
        patient = self._editable(patient_id, acting_role)
        if not 0 <= index < len(patient.medications):
            raise IndexError(f"No medication at index {index} for patient {patient_id}")
        medications = patient.medications[:index] + patient.medications[index + 1:]
        return self._save(patient, medications=medications)

    def add_medical_history(
        self,
        patient_id: int,
        entry: "MedicalHistoryEntry | Mapping[str, Any]",
        acting_role: StaffRole | str,
    ) -> PatientRecord:
        patient = self._editable(patient_id, acting_role)
        return self._save(patient, medical_history=patient.medical_history + (_as_history_entry(entry),))

    def remove_medical_history(self, patient_id: int, index: int, acting_role: StaffRole | str) -> PatientRecord:
        """
        Remove the medical history entry at `index` (display order).

        Raises:
            IndexError: If there is no entry at that index
        """
        patient = self._editable(patient_id, acting_role)
        if not 0 <= index < len(patient.medical_history):
            raise IndexError(f"No medical history entry at index {index} for patient {patient_id}")
        history = patient.medical_history[:index] + patient.medical_history[index + 1:]
        return self._save(patient, medical_history=history)

    def _editable(self, patient_id: int, acting_role: StaffRole | str) -> PatientRecord:
        patient = self.get_patient(patient_id)
        EditWindowGuard.ensure_can_edit(patient, acting_role, self.clock())
        return patient

    def _save(self, patient: PatientRecord, **changes: Any) -> PatientRecord:
        saved = self.store.save_patient(replace(patient, updated_at=self.clock(), **changes))
        logger.info(f"Updated patient {patient.id}: {', '.join(sorted(changes))}")
        return saved

"""
Patient snapshot and its clinical sub-records.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Tuple

from clinic_workflow.core.constants import StaffRole


@dataclass(frozen=True)
class Medication:
    """A current or past medication, kept in the order staff entered it."""
    name: str
    dosage: str
    frequency: str
    start_date: Optional[str] = None


@dataclass(frozen=True)
class MedicalHistoryEntry:
    """A past condition with the date it was diagnosed (free-form date text)."""
    condition: str
    diagnosed_date: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class PatientRecord:
    """
    Immutable snapshot of a patient.

    Either `name` or `first_name`/`last_name` identifies the patient; use
    `display_name` to read whichever is present. `allergies` behaves as a set
    (no case-insensitive duplicates) but keeps insertion order for display.

    `created_by` and `created_at` drive the secretary edit window.
    """

    id: Optional[int] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    gender: Optional[str] = None
    year_of_birth: Optional[int] = None
    birth_date: Optional[date] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    next_of_kin_name: Optional[str] = None
    next_of_kin_relationship: Optional[str] = None
    next_of_kin_phone: Optional[str] = None
    allergies: Tuple[str, ...] = ()
    medications: Tuple[Medication, ...] = ()
    medical_history: Tuple[MedicalHistoryEntry, ...] = ()
    created_by: StaffRole = StaffRole.DOCTOR
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0  # 0 until the store has persisted the patient

    def __post_init__(self) -> None:
        object.__setattr__(self, "created_by", StaffRole(self.created_by))
        object.__setattr__(self, "allergies", tuple(self.allergies))
        object.__setattr__(self, "medications", tuple(self.medications))
        object.__setattr__(self, "medical_history", tuple(self.medical_history))

    @property
    def display_name(self) -> str:
        if self.name and self.name.strip():
            return self.name.strip()
        parts = [p.strip() for p in (self.first_name, self.last_name) if p and p.strip()]
        return " ".join(parts)

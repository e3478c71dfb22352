"""
Visit (appointment) snapshot consumed and produced by the workflow engine.
"""

from dataclasses import dataclass
from datetime import date as date_type, datetime
from typing import Optional, Tuple

from clinic_workflow.core.constants import (
    DEFAULT_DISPLAY_TIME,
    DEFAULT_VISIT_TYPE,
    StaffRole,
    VisitStatus,
)
from clinic_workflow.records.diagnosis import Diagnosis
from clinic_workflow.utils.datetime_utils import coerce_date


@dataclass(frozen=True)
class VisitRecord:
    """
    Immutable snapshot of a visit.

    `status` is the stored status; the status shown to staff is always derived
    (see services.status_service). `date` has no time-of-day semantics:
    `appointment_time` is a display anchor only and plays no part in ordering.

    `diagnosis` is the current clinical note; `diagnoses` holds the notes it
    superseded, most recent first.
    """

    patient_id: int
    date: date_type
    status: VisitStatus = VisitStatus.SCHEDULED
    type: str = DEFAULT_VISIT_TYPE
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_by: StaffRole = StaffRole.VISITOR
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None
    version: int = 0  # 0 until the store has persisted the visit
    appointment_time: str = DEFAULT_DISPLAY_TIME
    original_visit_id: Optional[int] = None
    diagnosis: Optional[Diagnosis] = None
    diagnoses: Tuple[Diagnosis, ...] = ()

    def __post_init__(self) -> None:
        # Accept plain literals from callers and normalize once
        object.__setattr__(self, "status", VisitStatus(self.status))
        object.__setattr__(self, "created_by", StaffRole(self.created_by))
        object.__setattr__(self, "date", coerce_date(self.date))
        object.__setattr__(self, "diagnoses", tuple(self.diagnoses))

    @property
    def has_diagnosis(self) -> bool:
        """True when a current diagnosis or any superseded one is attached."""
        return self.diagnosis is not None or len(self.diagnoses) > 0

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

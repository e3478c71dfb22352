"""
Services package for the workflow engine.

The pure components (status derivation, diagnosis history, lifecycle
transitions, edit window, queue admission, classification) take snapshots
and the current time and return new snapshots or decisions. PatientService
and VisitService wire them to a ClinicStore and a clock.
"""

from .status_service import derive_status, effective_status
from .visit_lifecycle_service import VisitLifecycle
from .diagnosis_history_service import DiagnosisHistory
from .edit_window_service import EditWindowGuard
from .queue_admission_service import Admission, QueueAdmission
from .daily_queue import DailyQueue
from .visit_classifier_service import VisitBuckets, classify
from .clinic_store import ClinicStore, SqlAlchemyClinicStore
from .patient_service import PatientService
from .visit_service import VisitService

__all__ = [
    "derive_status",
    "effective_status",
    "VisitLifecycle",
    "DiagnosisHistory",
    "EditWindowGuard",
    "Admission",
    "QueueAdmission",
    "DailyQueue",
    "VisitBuckets",
    "classify",
    "ClinicStore",
    "SqlAlchemyClinicStore",
    "PatientService",
    "VisitService",
]

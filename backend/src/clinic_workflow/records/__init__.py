"""
Plain records exchanged between the workflow engine and its callers.
"""

from .diagnosis import Diagnosis, DiagnosisFile, coerce_diagnosis
from .patient import MedicalHistoryEntry, Medication, PatientRecord
from .queue import QueueEntry
from .visit import VisitRecord

__all__ = [
    "Diagnosis",
    "DiagnosisFile",
    "coerce_diagnosis",
    "MedicalHistoryEntry",
    "Medication",
    "PatientRecord",
    "QueueEntry",
    "VisitRecord",
]

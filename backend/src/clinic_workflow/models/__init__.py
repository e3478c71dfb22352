# Package initialization
# Import all models to ensure relationships are properly established
from .patient import Patient
from .visit import Visit
from .diagnosis_entry import DiagnosisEntry

__all__ = [
    "Patient",
    "Visit",
    "DiagnosisEntry",
]

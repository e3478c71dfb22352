"""
Typed failures raised by the workflow engine.

All of these are local, recoverable errors returned to the caller; the
presentation layer decides how to show them. None of them is retried here.
"""

from typing import Any, Optional


class ClinicWorkflowError(Exception):
    """Base class for all workflow engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidPatientReference(ClinicWorkflowError):
    """Raised when an operation references a missing or unidentified patient."""

    def __init__(self, message: str = "Patient is missing or has no id", patient_id: Any = None):
        self.patient_id = patient_id
        super().__init__(message)


class EditWindowExpired(ClinicWorkflowError):
    """
    Raised when a secretary mutates a record outside of the edit window.

    Presented to the user as a permission denial.
    """

    def __init__(self, message: str, record_id: Any = None, acting_role: Optional[str] = None):
        self.record_id = record_id
        self.acting_role = acting_role
        super().__init__(message)


class DiagnosisNotFound(ClinicWorkflowError):
    """Raised when a diagnosis id is not attached to the visit."""

    def __init__(self, diagnosis_id: str, visit_id: Any = None):
        self.diagnosis_id = diagnosis_id
        self.visit_id = visit_id
        super().__init__(f"Diagnosis {diagnosis_id} not found on visit {visit_id}")


class InvalidStatusTransition(ClinicWorkflowError):
    """Raised for an illegal stored-status change (e.g. un-cancelling a visit)."""

    def __init__(self, message: str, from_status: Optional[str] = None, to_status: Optional[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message)


class VisitNotFound(ClinicWorkflowError):
    """Raised by the workflow services when a visit id cannot be loaded."""

    def __init__(self, visit_id: Any):
        self.visit_id = visit_id
        super().__init__(f"Visit {visit_id} not found")


class RecordVersionConflictError(ClinicWorkflowError):
    """Raised by the store when a save is based on a stale version of the record."""

    def __init__(self, message: str, record_id: Any = None, expected_version: Optional[int] = None,
                 current_version: Optional[int] = None):
        self.record_id = record_id
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(message)

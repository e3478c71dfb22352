"""Workflow constants and literal values shared across the engine."""

from enum import Enum


class VisitStatus(str, Enum):
    """
    Visit status literals.

    Values are case-sensitive and match the stored/serialized strings exactly.
    NEEDS_DIAGNOSIS is derived only and is never written to storage.
    """

    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RESCHEDULED = "Rescheduled"
    PENDING = "Pending"
    NEEDS_DIAGNOSIS = "Needs Diagnosis"

    def __str__(self) -> str:
        return self.value


class StaffRole(str, Enum):
    """Roles that create or mutate records."""

    DOCTOR = "doctor"
    SECRETARY = "secretary"
    VISITOR = "visitor"
    ADMIN = "admin"

    def __str__(self) -> str:
        return self.value


# Statuses that may be persisted as a visit's stored status
STORABLE_VISIT_STATUSES = frozenset({
    VisitStatus.SCHEDULED,
    VisitStatus.COMPLETED,
    VisitStatus.CANCELLED,
    VisitStatus.RESCHEDULED,
    VisitStatus.PENDING,
})

# Roles that are never subject to the secretary edit window
EDIT_WINDOW_BYPASS_ROLES = frozenset({StaffRole.DOCTOR, StaffRole.ADMIN})

# Secretary edit window on records they created (one hour)
SECRETARY_EDIT_WINDOW_MS = 3_600_000
MS_PER_MINUTE = 60_000

# Visit defaults
DEFAULT_VISIT_TYPE = "Consultation"
DEFAULT_WALK_IN_REASON = "Walk-in visit"

# Every visit is displayed at this time; ordering is by date only
DEFAULT_DISPLAY_TIME = "09:00"

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_NOTES_LENGTH = 2000

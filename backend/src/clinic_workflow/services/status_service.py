"""
Effective visit status derivation.

The status staff see is never the raw stored value: it is derived from the
stored status, the visit date and the current time. Derivation is pure. It
never writes, never reads the clock and never mutates its inputs, so it can be
called as often as list views need.
"""

from datetime import date, datetime

from clinic_workflow.core.constants import VisitStatus
from clinic_workflow.records.visit import VisitRecord
from clinic_workflow.utils.datetime_utils import clinic_today

# Stored statuses that turn into "Needs Diagnosis" once the visit date has passed
_NEEDS_DIAGNOSIS_SOURCES = frozenset({VisitStatus.SCHEDULED, VisitStatus.COMPLETED})


def derive_status(
    stored_status: VisitStatus | str,
    visit_date: date,
    has_diagnosis: bool,
    now: datetime,
) -> VisitStatus:
    """
    Derive the effective status of a visit.

    Rules, in priority order:
    1. Cancelled stays Cancelled (terminal).
    2. Any attached diagnosis means Completed.
    3. A past visit still Scheduled, or Completed without a diagnosis,
       Needs Diagnosis.
    4. Otherwise the stored status is returned unchanged.

    Args:
        stored_status: Status as persisted
        visit_date: Calendar date of the visit
        has_diagnosis: Whether any diagnosis is attached
        now: Current instant; truncated to the clinic calendar date

    Returns:
        Effective status

    Raises:
        ValueError: If stored_status is not a known status literal
    """
    status = VisitStatus(stored_status)

    if status is VisitStatus.CANCELLED:
        return VisitStatus.CANCELLED

    if has_diagnosis:
        return VisitStatus.COMPLETED

    if visit_date < clinic_today(now) and status in _NEEDS_DIAGNOSIS_SOURCES:
        return VisitStatus.NEEDS_DIAGNOSIS

    return status


def effective_status(visit: VisitRecord, now: datetime) -> VisitStatus:
    """Derive the effective status of a visit snapshot."""
    return derive_status(visit.status, visit.date, visit.has_diagnosis, now)


def is_open(visit: VisitRecord, now: datetime) -> bool:
    """
    True when the visit can still be acted on today (queued, diagnosed).

    Open means the effective status is neither Completed nor Cancelled.
    """
    return effective_status(visit, now) not in (VisitStatus.COMPLETED, VisitStatus.CANCELLED)

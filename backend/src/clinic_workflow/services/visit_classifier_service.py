"""
Visit list views.

Partitions a patient's (or the clinic's) visits into the buckets the
dashboards show, and implements the period filters and relative date labels
used next to them. Everything here is pure and keyed on the clinic calendar.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Sequence

from clinic_workflow.core.constants import VisitStatus
from clinic_workflow.records.visit import VisitRecord
from clinic_workflow.services.status_service import effective_status
from clinic_workflow.utils.datetime_utils import clinic_today

# Period names accepted by filter_by_period
PERIODS = (
    "today",
    "tomorrow",
    "thisWeek",
    "nextWeek",
    "thisMonth",
    "nextMonth",
    "upcoming",
    "past",
    "needsDiagnosis",
)


@dataclass(frozen=True)
class VisitBuckets:
    """
    Visits grouped for display.

    Every visit lands in exactly one of today/upcoming/past. needs_diagnosis
    is an overlay listing the visits whose effective status is
    "Needs Diagnosis"; they also appear in their primary bucket.
    """
    today: List[VisitRecord] = field(default_factory=list)
    upcoming: List[VisitRecord] = field(default_factory=list)
    past: List[VisitRecord] = field(default_factory=list)
    needs_diagnosis: List[VisitRecord] = field(default_factory=list)


def classify(visits: Sequence[VisitRecord], now: datetime) -> VisitBuckets:
    """
    Split visits into today / upcoming / past by calendar date.

    today and upcoming are ascending by date, past and needs_diagnosis are
    descending. Sorting is stable, so visits on the same date keep their
    input order.
    """
    today = clinic_today(now)

    buckets = VisitBuckets()
    for visit in visits:
        if visit.date == today:
            buckets.today.append(visit)
        elif visit.date > today:
            buckets.upcoming.append(visit)
        else:
            buckets.past.append(visit)
        if effective_status(visit, now) is VisitStatus.NEEDS_DIAGNOSIS:
            buckets.needs_diagnosis.append(visit)

    buckets.upcoming.sort(key=lambda v: v.date)
    buckets.past.sort(key=lambda v: v.date, reverse=True)
    buckets.needs_diagnosis.sort(key=lambda v: v.date, reverse=True)
    return buckets


def count_pending_diagnoses(visits: Sequence[VisitRecord], now: datetime) -> int:
    """Number of visits whose effective status is Needs Diagnosis."""
    return sum(1 for v in visits if effective_status(v, now) is VisitStatus.NEEDS_DIAGNOSIS)


def _next_sunday(today: date) -> date:
    # Weeks run Sunday to Saturday; on a Sunday the next one is a week away
    days_since_sunday = (today.weekday() + 1) % 7
    return today + timedelta(days=7 - days_since_sunday)


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def filter_by_period(visits: Sequence[VisitRecord], period: str, now: datetime) -> List[VisitRecord]:
    """
    Keep the visits that fall in a named period, preserving input order.

    Periods:
        today, tomorrow: that calendar date
        thisWeek: today through the coming Sunday
        nextWeek: the coming Sunday and the six days after it
        thisMonth: today through the end of the month
        nextMonth: the whole of next month
        upcoming: today onwards
        past: before today
        needsDiagnosis: effective status is Needs Diagnosis

    Raises:
        ValueError: If period is not one of PERIODS
    """
    today = clinic_today(now)

    if period == "needsDiagnosis":
        return [v for v in visits if effective_status(v, now) is VisitStatus.NEEDS_DIAGNOSIS]

    next_week_start = _next_sunday(today)
    this_month_end = _month_end(today.year, today.month)
    next_month_start = this_month_end + timedelta(days=1)
    next_month_end = _month_end(next_month_start.year, next_month_start.month)

    ranges = {
        "today": (today, today),
        "tomorrow": (today + timedelta(days=1), today + timedelta(days=1)),
        "thisWeek": (today, next_week_start),
        "nextWeek": (next_week_start, next_week_start + timedelta(days=6)),
        "thisMonth": (today, this_month_end),
        "nextMonth": (next_month_start, next_month_end),
        "upcoming": (today, date.max),
        "past": (date.min, today - timedelta(days=1)),
    }
    if period not in ranges:
        raise ValueError(f"Unknown period '{period}'; expected one of {', '.join(PERIODS)}")

    start, end = ranges[period]
    return [v for v in visits if start <= v.date <= end]


def relative_date_label(visit_date: date, now: datetime) -> str:
    """
    Short label for how far away a visit is.

    Returns "Past", "Today", "Tomorrow", the weekday name within a week,
    "Next Week" within two weeks, "Mon DD" (e.g. "Mar 5") within thirty days,
    and "Next Month" beyond that.
    """
    days = (visit_date - clinic_today(now)).days
    if days < 0:
        return "Past"
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days < 7:
        return calendar.day_name[visit_date.weekday()]
    if days < 14:
        return "Next Week"
    if days < 30:
        return f"{calendar.month_abbr[visit_date.month]} {visit_date.day}"
    return "Next Month"

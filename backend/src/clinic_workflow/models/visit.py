"""
Visit (appointment) model.

A visit is booked for a calendar date. `appointment_time` is only a display
anchor; ordering never uses it. The stored `status` is never "Needs
Diagnosis": that status is derived when visits are read.
"""

from sqlalchemy import Integer, String, Text, TIMESTAMP, Date, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, date as date_type
from typing import List, Optional, TYPE_CHECKING

from clinic_workflow.core.constants import (
    DEFAULT_DISPLAY_TIME,
    DEFAULT_VISIT_TYPE,
    MAX_NOTES_LENGTH,
    MAX_STRING_LENGTH,
)
from clinic_workflow.core.database import Base

if TYPE_CHECKING:
    from clinic_workflow.models.diagnosis_entry import DiagnosisEntry
    from clinic_workflow.models.patient import Patient


class Visit(Base):
    """Visit entity linking a patient to a clinic day."""

    __tablename__ = "visits"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False)

    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    """Calendar date of the visit (no time of day)."""

    appointment_time: Mapped[str] = mapped_column(String(5), nullable=False, default=DEFAULT_DISPLAY_TIME)

    type: Mapped[str] = mapped_column(String(50), nullable=False, default=DEFAULT_VISIT_TYPE)

    reason: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text(MAX_NOTES_LENGTH), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Scheduled")
    """Stored status: 'Scheduled', 'Completed', 'Cancelled', 'Rescheduled' or 'Pending'."""

    created_by: Mapped[str] = mapped_column(String(20), nullable=False, default="visitor")

    original_visit_id: Mapped[Optional[int]] = mapped_column(ForeignKey("visits.id"), nullable=True)
    """Visit this one was rescheduled from (if any)."""

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    patient: Mapped["Patient"] = relationship("Patient", back_populates="visits")

    diagnosis_entries: Mapped[List["DiagnosisEntry"]] = relationship(
        "DiagnosisEntry",
        back_populates="visit",
        cascade="all, delete-orphan",
        order_by="DiagnosisEntry.position",
    )
    """Position 0 is the current diagnosis; the rest are superseded, most recent first."""

    __table_args__ = (
        Index('idx_visits_patient_date', 'patient_id', 'date'),
        Index('idx_visits_date', 'date'),
    )

"""
Patient model representing individuals seen at the clinic.

Patients are registered by doctors, secretaries, admins or online visitors.
`created_by` and `created_at` are kept because they decide how long a
secretary may keep editing the record.
"""

from sqlalchemy import Integer, String, Text, TIMESTAMP, Date, Index
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, date
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from clinic_workflow.core.constants import MAX_STRING_LENGTH
from clinic_workflow.core.database import Base

if TYPE_CHECKING:
    from clinic_workflow.models.visit import Visit


class Patient(Base):
    """
    Patient entity with demographics, contact details and clinical sub-records.

    Allergies, medications and medical history are small ordered lists edited
    as a whole, so they are stored as JSON columns on the patient row.
    """

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the patient."""

    name: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Full name as entered at the desk."""

    first_name: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Split name, used by records registered through the online form."""

    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    year_of_birth: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    next_of_kin_name: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    next_of_kin_relationship: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    next_of_kin_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    allergies: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    """Allergy names in the order they were entered, without duplicates."""

    medications: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    """List of {name, dosage, frequency, start_date}."""

    medical_history: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    """List of {condition, diagnosed_date, notes}."""

    created_by: Mapped[str] = mapped_column(String(20), nullable=False, default="doctor")
    """Role that registered the patient: 'doctor', 'secretary', 'visitor' or 'admin'."""

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Incremented on every save; a save based on an older version is rejected."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the patient was first created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    visits: Mapped[List["Visit"]] = relationship("Visit", back_populates="patient")

    __table_args__ = (
        Index('idx_patients_phone', 'phone'),
        Index('idx_patients_created_at', 'created_at'),
    )

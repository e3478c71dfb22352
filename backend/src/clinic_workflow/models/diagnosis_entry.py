"""
Diagnosis rows attached to a visit.
"""

from sqlalchemy import Integer, String, Text, TIMESTAMP, ForeignKey, Index
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from clinic_workflow.core.database import Base

if TYPE_CHECKING:
    from clinic_workflow.models.visit import Visit


class DiagnosisEntry(Base):
    """
    One clinical note on a visit.

    `position` 0 holds the current diagnosis; 1..n hold superseded notes,
    most recent first. `id` is the diagnosis id callers use to remove an entry.
    """

    __tablename__ = "diagnosis_entries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    visit_id: Mapped[int] = mapped_column(ForeignKey("visits.id", ondelete="CASCADE"), nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    diagnosis: Mapped[str] = mapped_column(Text, nullable=False, default="")
    treatment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    follow_up: Mapped[str] = mapped_column(Text, nullable=False, default="")

    files: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    """Attachment references: {name, type, size, url}."""

    recorded_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """The note's own updatedAt. Not stamped by the row timestamp listeners."""

    # Relationships
    visit: Mapped["Visit"] = relationship("Visit", back_populates="diagnosis_entries")

    __table_args__ = (
        Index('idx_diagnosis_entries_visit_position', 'visit_id', 'position'),
    )

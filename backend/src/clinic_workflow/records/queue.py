"""
Queue entry produced at check-in.

Queue entries are ephemeral: they are not a system of record. An entry either
points at an existing same-day visit or at the visit synthesized for it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class QueueEntry:
    patient_id: int
    patient_name: str
    is_walk_in: bool
    linked_visit_id: Optional[int] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    # Ordering state, managed by services.daily_queue.DailyQueue
    queue_number: int = 0
    position: int = 0
    active: bool = True
    added_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

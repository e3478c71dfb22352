"""
Ordering of today's queue.

The queue is working state for the front desk, not a system of record. Each
entry is keyed by the visit it points at. `queue_number` is the ticket handed
out at check-in and never changes; `position` is the current place in line.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple

from clinic_workflow.core.exceptions import VisitNotFound
from clinic_workflow.records.queue import QueueEntry

logger = logging.getLogger(__name__)


class DailyQueue:
    """Queue entries for a single clinic day."""

    def __init__(self, day: date):
        self.day = day
        self._entries: Dict[int, QueueEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, visit_id: object) -> bool:
        return visit_id in self._entries

    def entries(self) -> List[QueueEntry]:
        """All entries in line order (completed ones trail)."""
        return sorted(self._entries.values(), key=lambda e: e.position)

    def active(self) -> List[QueueEntry]:
        """Entries still waiting, in line order."""
        return [e for e in self.entries() if e.active]

    def get(self, visit_id: int) -> QueueEntry:
        try:
            return self._entries[visit_id]
        except KeyError:
            raise VisitNotFound(visit_id) from None

    def add(self, entry: QueueEntry, now: datetime) -> QueueEntry:
        """
        Put an entry at the end of the line, ahead of completed entries.

        Adding a visit that is already queued returns the existing entry; if
        it had been completed it is reactivated at the end of the line.

        Raises:
            ValueError: If the entry is not linked to a persisted visit
        """
        visit_id = entry.linked_visit_id
        if visit_id is None:
            raise ValueError("Queue entries must be linked to a saved visit")

        existing = self._entries.get(visit_id)
        if existing is not None:
            if not existing.active:
                self._entries[visit_id] = replace(existing, active=True, added_at=now, completed_at=None)
                self._renumber(self._active_ids(exclude=visit_id) + [visit_id] + self._done_ids(exclude=visit_id))
                logger.info(f"Visit {visit_id} re-queued at position {self._entries[visit_id].position}")
            return self._entries[visit_id]

        self._entries[visit_id] = replace(
            entry,
            queue_number=self._next_queue_number(),
            active=True,
            added_at=now,
            completed_at=None,
        )
        self._renumber(self._active_ids(exclude=visit_id) + [visit_id] + self._done_ids())
        queued = self._entries[visit_id]
        logger.info(f"Visit {visit_id} queued as #{queued.queue_number}")
        return queued

    def remove(self, visit_id: int) -> None:
        """Take an entry out of the line and close the gap behind it."""
        self.get(visit_id)
        del self._entries[visit_id]
        self._renumber(self._active_ids() + self._done_ids())
        logger.info(f"Visit {visit_id} removed from queue")

    def reorder(self, visit_ids: Sequence[int]) -> List[QueueEntry]:
        """
        Put the listed waiting visits first, in the given order.

        Unknown and completed ids are ignored. Waiting entries not listed
        follow in their current order; completed entries stay at the back.
        """
        waiting = self._active_ids()
        listed = [vid for vid in dict.fromkeys(visit_ids) if vid in waiting]
        rest = [vid for vid in waiting if vid not in listed]
        self._renumber(listed + rest + self._done_ids())
        logger.info(f"Queue for {self.day} reordered")
        return self.entries()

    def complete(self, visit_id: int, now: datetime) -> QueueEntry:
        """Mark an entry as seen and move it behind everyone else."""
        entry = self.get(visit_id)
        self._entries[visit_id] = replace(entry, active=False, completed_at=now)
        self._renumber(self._active_ids() + self._done_ids(exclude=visit_id) + [visit_id])
        logger.info(f"Visit {visit_id} completed in queue")
        return self._entries[visit_id]

    def reset(self) -> None:
        self._entries.clear()
        logger.info(f"Queue for {self.day} reset")

    def _active_ids(self, exclude: Optional[int] = None) -> List[int]:
        return [vid for vid, e in self._ordered() if e.active and vid != exclude]

    def _done_ids(self, exclude: Optional[int] = None) -> List[int]:
        return [vid for vid, e in self._ordered() if not e.active and vid != exclude]

    def _ordered(self) -> List[Tuple[int, QueueEntry]]:
        return sorted(self._entries.items(), key=lambda item: item[1].position)

    def _renumber(self, visit_ids: List[int]) -> None:
        # Waiting entries hold 1..k, completed ones follow
        for position, vid in enumerate(visit_ids, start=1):
            if self._entries[vid].position != position:
                self._entries[vid] = replace(self._entries[vid], position=position)

    def _next_queue_number(self) -> int:
        return max((e.queue_number for e in self._entries.values()), default=0) + 1

"""
Secretary edit window.

A secretary may change a patient record they registered for one hour after
creating it. Records created by anyone else are not time-boxed, and doctors
and admins are never restricted.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from clinic_workflow.core.constants import (
    EDIT_WINDOW_BYPASS_ROLES,
    MS_PER_MINUTE,
    SECRETARY_EDIT_WINDOW_MS,
    StaffRole,
)
from clinic_workflow.core.exceptions import EditWindowExpired
from clinic_workflow.utils.datetime_utils import elapsed_ms

logger = logging.getLogger(__name__)


class WindowedRecord(Protocol):
    """Anything carrying creation metadata (patients in practice)."""

    id: Optional[int]
    created_by: StaffRole
    created_at: Optional[datetime]


class EditWindowGuard:
    """Decides whether a role may still mutate a record."""

    @staticmethod
    def can_edit(record: WindowedRecord, acting_role: StaffRole | str, now: datetime) -> bool:
        """
        Check whether `acting_role` may mutate `record` at `now`.

        Args:
            record: Record with `created_by` and `created_at`
            acting_role: Role performing the mutation
            now: Current instant

        Returns:
            True if the mutation is allowed

        Raises:
            ValueError: If acting_role is not a known role literal
        """
        role = StaffRole(acting_role)

        if StaffRole(record.created_by) is not StaffRole.SECRETARY:
            return True

        if role in EDIT_WINDOW_BYPASS_ROLES:
            return True

        if role is not StaffRole.SECRETARY:
            return False

        # Without a creation time the window cannot be proven open
        if record.created_at is None:
            return False

        return elapsed_ms(record.created_at, now) <= SECRETARY_EDIT_WINDOW_MS

    @staticmethod
    def minutes_remaining(record: WindowedRecord, now: datetime) -> int:
        """
        Whole minutes left in the edit window, rounded down and never negative.

        Only meaningful for secretary-created records; a record without
        `created_at` has no time left.
        """
        if record.created_at is None:
            return 0
        remaining_ms = SECRETARY_EDIT_WINDOW_MS - elapsed_ms(record.created_at, now)
        return max(0, remaining_ms // MS_PER_MINUTE)

    @staticmethod
    def ensure_can_edit(record: WindowedRecord, acting_role: StaffRole | str, now: datetime) -> None:
        """
        Guard a mutation.

        Raises:
            EditWindowExpired: If `acting_role` may not mutate `record` at `now`
        """
        if EditWindowGuard.can_edit(record, acting_role, now):
            return

        role = StaffRole(acting_role)
        logger.info(f"Edit denied on record {record.id} for role {role.value}")
        if role is StaffRole.SECRETARY:
            message = "You can only edit patients within 1 hour of creating them"
        else:
            message = f"Role '{role.value}' may not edit this record"
        raise EditWindowExpired(message, record_id=record.id, acting_role=role.value)

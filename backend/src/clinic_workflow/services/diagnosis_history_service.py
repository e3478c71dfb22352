"""
Diagnosis history for a visit.

A visit holds one current diagnosis plus the diagnoses it superseded, most
recent first. Saving a note on a visit that already has one is an *update*:
the previous note moves to the front of the history and the new one becomes
current. Nothing is ever dropped implicitly; removal is a separate, explicit
operation.
"""

import logging
from dataclasses import replace
from datetime import datetime, time
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from clinic_workflow.core.exceptions import DiagnosisNotFound
from clinic_workflow.records.diagnosis import Diagnosis, coerce_diagnosis, new_diagnosis_id
from clinic_workflow.records.visit import VisitRecord
from clinic_workflow.services.visit_lifecycle_service import VisitLifecycle
from clinic_workflow.utils.datetime_utils import CLINIC_TZ, ensure_clinic_tz

logger = logging.getLogger(__name__)


class DiagnosisHistory:
    """Operations on the current diagnosis and its superseded history."""

    @staticmethod
    def attach(
        visit: VisitRecord,
        new_diagnosis: "Diagnosis | Mapping[str, Any] | str",
        now: datetime,
    ) -> VisitRecord:
        """
        Attach a diagnosis to a visit.

        - No current diagnosis: the new one becomes current (create); the
          history is left as it is.
        - A current diagnosis exists: it is pushed to the front of the history
          and the new one becomes current (update). A blank current diagnosis
          is not pushed, so history never collects empty entries.

        The visit is completed as part of the same transition.

        Args:
            visit: Visit snapshot
            new_diagnosis: Diagnosis or wire-shaped payload; validated here
            now: Current instant; stamped on the diagnosis when it has no updatedAt

        Returns:
            New visit snapshot

        Raises:
            InvalidStatusTransition: If the visit is Cancelled
            pydantic.ValidationError: If the payload does not match the schema
        """
        diagnosis = coerce_diagnosis(new_diagnosis)
        if diagnosis.updated_at is None:
            diagnosis = diagnosis.model_copy(update={"updated_at": ensure_clinic_tz(now)})

        # Ids must stay unique within a visit so entries can be removed one by one
        attached_ids = {d.id for d in DiagnosisHistory.all_diagnoses(visit)}
        if diagnosis.id in attached_ids:
            diagnosis = diagnosis.model_copy(update={"id": new_diagnosis_id()})

        history = visit.diagnoses
        previous = visit.diagnosis
        if previous is not None and not previous.is_empty():
            history = (previous,) + history
            logger.info(f"Visit {visit.id}: diagnosis {previous.id} superseded by {diagnosis.id}")
        else:
            logger.info(f"Visit {visit.id}: diagnosis {diagnosis.id} recorded")

        return VisitLifecycle.complete_with_diagnosis(visit, diagnosis, history, now)

    @staticmethod
    def remove(visit: VisitRecord, diagnosis_id: str, now: datetime) -> VisitRecord:
        """
        Remove one diagnosis from the visit.

        The remaining entries keep their order. Removing the current diagnosis
        promotes the most recent superseded one (if any) to current. The stored
        status is not touched.

        Raises:
            DiagnosisNotFound: If the id is neither current nor in the history
        """
        if visit.diagnosis is not None and visit.diagnosis.id == diagnosis_id:
            promoted: Optional[Diagnosis] = visit.diagnoses[0] if visit.diagnoses else None
            logger.info(
                f"Visit {visit.id}: current diagnosis {diagnosis_id} removed"
                + (f", {promoted.id} promoted" if promoted else "")
            )
            return replace(visit, diagnosis=promoted, diagnoses=visit.diagnoses[1:], updated_at=now)

        remaining = tuple(d for d in visit.diagnoses if d.id != diagnosis_id)
        if len(remaining) == len(visit.diagnoses):
            raise DiagnosisNotFound(diagnosis_id, visit_id=visit.id)

        logger.info(f"Visit {visit.id}: superseded diagnosis {diagnosis_id} removed")
        return replace(visit, diagnoses=remaining, updated_at=now)

    @staticmethod
    def find(visit: VisitRecord, diagnosis_id: str) -> Diagnosis:
        """
        Look up a diagnosis attached to the visit.

        Raises:
            DiagnosisNotFound: If the id is not attached
        """
        for diagnosis in DiagnosisHistory.all_diagnoses(visit):
            if diagnosis.id == diagnosis_id:
                return diagnosis
        raise DiagnosisNotFound(diagnosis_id, visit_id=visit.id)

    @staticmethod
    def all_diagnoses(visit: VisitRecord) -> List[Diagnosis]:
        """Current diagnosis first, then the history, most recent first."""
        current = [visit.diagnosis] if visit.diagnosis is not None else []
        return current + list(visit.diagnoses)

    @staticmethod
    def patient_timeline(visits: Sequence[VisitRecord]) -> List[Tuple[VisitRecord, Diagnosis]]:
        """
        Flatten every diagnosis across a patient's visits.

        Entries are ordered by diagnosis `updated_at`, most recent first.
        Entries without a timestamp count as the start of their visit date.
        Ties keep input order.
        """
        entries = [(visit, diagnosis) for visit in visits for diagnosis in DiagnosisHistory.all_diagnoses(visit)]

        def sort_key(entry: Tuple[VisitRecord, Diagnosis]) -> datetime:
            visit, diagnosis = entry
            if diagnosis.updated_at is not None:
                return diagnosis.updated_at
            return datetime.combine(visit.date, time.min, tzinfo=CLINIC_TZ)

        return sorted(entries, key=sort_key, reverse=True)

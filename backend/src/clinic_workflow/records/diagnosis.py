"""
Diagnosis schema.

A diagnosis is validated when it is written; once it is a `Diagnosis` it is
trusted everywhere else. JSON uses the camelCase keys clinics exchange
(`followUp`, `updatedAt`); Python code uses snake_case attributes.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_workflow.utils.datetime_utils import parse_datetime_to_clinic


def new_diagnosis_id() -> str:
    return uuid.uuid4().hex


class DiagnosisFile(BaseModel):
    """An uploaded attachment referenced by a diagnosis (storage lives elsewhere)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    type: str = ""
    size: int = Field(default=0, ge=0)
    url: str = ""


class Diagnosis(BaseModel):
    """
    Clinical note attached to a visit.

    `id` identifies the entry inside a visit's diagnosis history so it can be
    removed explicitly; it is generated when the caller does not supply one.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    id: str = Field(default_factory=new_diagnosis_id, min_length=1)
    notes: str = ""
    diagnosis: str = ""
    treatment: str = ""
    follow_up: str = Field(default="", alias="followUp")
    files: Tuple[DiagnosisFile, ...] = ()
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("updated_at", mode="before")
    @classmethod
    def _parse_updated_at(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, (str, datetime)):
            return parse_datetime_to_clinic(value)
        return value

    def is_empty(self) -> bool:
        """True when the note carries no text and no attachments (a default/blank entry)."""
        texts = (self.notes, self.diagnosis, self.treatment, self.follow_up)
        return not any(text.strip() for text in texts) and not self.files

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to the wire shape with camelCase keys and ISO-8601 `updatedAt`."""
        return self.model_dump(by_alias=True, mode="json")


def coerce_diagnosis(value: "Diagnosis | Mapping[str, Any] | str") -> Diagnosis:
    """
    Validate a diagnosis payload at the write boundary.

    Accepts an existing `Diagnosis`, a mapping in the wire shape, or a JSON
    object string. Anything else is rejected; a free-text string is never
    accepted in place of a structured diagnosis.

    Raises:
        pydantic.ValidationError: If the payload does not match the schema
        TypeError: If the payload is not a supported type
    """
    if isinstance(value, Diagnosis):
        return value
    if isinstance(value, Mapping):
        return Diagnosis.model_validate(dict(value))
    if isinstance(value, str):
        return Diagnosis.model_validate_json(value)
    raise TypeError(f"Unsupported diagnosis payload type: {type(value).__name__}")

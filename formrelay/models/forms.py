"""
Models for forms (owned delegated resources) and their submissions.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionType(str, Enum):
    SHORT_TEXT = "shortText"
    LONG_TEXT = "longText"
    SINGLE_SELECT = "singleSelect"
    MULTI_SELECT = "multiSelect"
    ATTACHMENT = "attachment"


class Question(BaseModel):
    """A form question bound to one Airtable field."""

    question_key: str = Field(..., min_length=1)
    platform_field_id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    type: QuestionType
    required: bool = False
    options: List[str] = Field(default_factory=list)
    conditional_rules: Optional[Dict[str, Any]] = Field(
        None, description="Opaque visibility rules evaluated by the front-end."
    )


class Form(BaseModel):
    """A form whose submissions are written with the owner's credential."""

    form_id: str
    owner_id: str = Field(..., description="External id of the owning account.")
    base_id: str
    table_id: str
    title: str = "Untitled Form"
    questions: List[Question] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class RecordStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class SubmissionRecord(BaseModel):
    """Local cache of a record written to Airtable."""

    external_record_id: str = Field(..., description="Airtable record id.")
    form_id: str
    answers: Dict[str, Any] = Field(default_factory=dict)
    status: RecordStatus = RecordStatus.ACTIVE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = [
    "Form",
    "Question",
    "QuestionType",
    "RecordStatus",
    "SubmissionRecord",
]

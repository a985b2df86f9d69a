"""
Pydantic models for form management and public submissions.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from formrelay.models.forms import Question, RecordStatus, SubmissionRecord


class FormCreateRequest(BaseModel):
    """Definition of a new form bound to an Airtable table."""

    title: Optional[str] = Field(None, description="Defaults to 'Untitled Form'.")
    base_id: str = Field(..., min_length=1, description="Airtable base id.")
    table_id: str = Field(..., min_length=1, description="Airtable table id.")
    questions: List[Question] = Field(..., min_length=1)


class FormSummary(BaseModel):
    form_id: str
    title: str
    base_id: str
    table_id: str
    created_at: datetime
    updated_at: datetime


class SubmissionRequest(BaseModel):
    """Answers keyed by question key, as filled in by a visitor."""

    answers: Dict[str, Any] = Field(default_factory=dict)


class SubmissionResult(BaseModel):
    message: str = "Response submitted successfully"
    record_id: str = Field(..., description="Airtable id of the created record.")


class SubmissionView(BaseModel):
    """A stored submission as listed to the form owner."""

    record_id: str
    answers: Dict[str, Any]
    status: RecordStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: SubmissionRecord) -> "SubmissionView":
        return cls(
            record_id=record.external_record_id,
            answers=record.answers,
            status=record.status,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


__all__ = [
    "FormCreateRequest",
    "FormSummary",
    "SubmissionRequest",
    "SubmissionResult",
    "SubmissionView",
]

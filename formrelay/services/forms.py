"""Persistence for forms and the submissions written through them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from formrelay.clients.sqlite_store import KeyValueStore
from formrelay.models.forms import Form, Question, SubmissionRecord


def _strip_keys(item: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in item.items() if key not in {"pk", "sk"}}


class FormStore:
    """Forms keyed by id, with a per-owner index."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def create(
        self,
        *,
        owner_id: str,
        base_id: str,
        table_id: str,
        title: Optional[str],
        questions: List[Question],
    ) -> Form:
        form = Form(
            form_id=uuid4().hex,
            owner_id=owner_id,
            base_id=base_id,
            table_id=table_id,
            title=title or "Untitled Form",
            questions=questions,
        )
        # index first: a dangling index entry is skipped on listing
        self._store.put_item(
            {
                "pk": f"account#{owner_id}",
                "sk": f"form#{form.form_id}",
                "form_id": form.form_id,
            }
        )
        self._store.put_item(
            {
                "pk": f"form#{form.form_id}",
                "sk": "definition",
                **form.model_dump(mode="json"),
            }
        )
        return form

    def get(self, form_id: str) -> Optional[Form]:
        item = self._store.get_item(
            partition_key=f"form#{form_id}", sort_key="definition"
        )
        if not item:
            return None
        return Form.model_validate(_strip_keys(item))

    def list_for_owner(self, owner_id: str) -> List[Form]:
        index = self._store.list_items_with_prefix(
            partition_key=f"account#{owner_id}", sort_key_prefix="form#"
        )
        forms = [self.get(entry["form_id"]) for entry in index]
        return [form for form in forms if form is not None]


class SubmissionStore:
    """Submissions keyed by Airtable record id, with a per-form index."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def create(
        self, *, form_id: str, external_record_id: str, answers: Dict[str, Any]
    ) -> SubmissionRecord:
        now = datetime.now(timezone.utc)
        record = SubmissionRecord(
            external_record_id=external_record_id,
            form_id=form_id,
            answers=answers,
            created_at=now,
            updated_at=now,
        )
        # index first: a dangling index entry is skipped on listing
        self._store.put_item(
            {
                "pk": f"form#{form_id}",
                "sk": f"record#{external_record_id}",
                "external_record_id": external_record_id,
            }
        )
        self.save(record)
        return record

    def get_by_external_id(self, external_record_id: str) -> Optional[SubmissionRecord]:
        item = self._store.get_item(
            partition_key=f"record#{external_record_id}", sort_key="submission"
        )
        if not item:
            return None
        return SubmissionRecord.model_validate(_strip_keys(item))

    def save(self, record: SubmissionRecord) -> None:
        self._store.put_item(
            {
                "pk": f"record#{record.external_record_id}",
                "sk": "submission",
                **record.model_dump(mode="json"),
            }
        )

    def list_for_form(self, form_id: str) -> List[SubmissionRecord]:
        index = self._store.list_items_with_prefix(
            partition_key=f"form#{form_id}", sort_key_prefix="record#"
        )
        records = [
            self.get_by_external_id(entry["external_record_id"]) for entry in index
        ]
        return sorted(
            (record for record in records if record is not None),
            key=lambda record: record.created_at,
            reverse=True,
        )


__all__ = ["FormStore", "SubmissionStore"]

"""
Delegated write gate for public form submissions.

The visitor submitting a form is anonymous. The write to Airtable is made
with the *form owner's* stored credential, resolved from the credential vault.
There is no fallback credential and no token refresh: a missing or expired
owner credential fails the submission.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from formrelay.clients.airtable_records import AirtableRecordsClient
from formrelay.core.errors import (
    DelegationError,
    DelegationExpiredError,
    SubmissionValidationError,
)
from formrelay.models.account import Account
from formrelay.models.forms import Form, QuestionType, SubmissionRecord
from formrelay.services.credential_vault import CredentialVault
from formrelay.services.forms import SubmissionStore

logger = logging.getLogger(__name__)

_TEXT_TYPES = (QuestionType.SHORT_TEXT, QuestionType.LONG_TEXT)


def _is_empty(answer: Any) -> bool:
    return answer is None or answer == ""


def validate_answers(form: Form, answers: Dict[str, Any]) -> List[str]:
    """Return human-readable problems with ``answers``; empty when valid."""
    errors: List[str] = []
    for question in form.questions:
        answer = answers.get(question.question_key)
        if _is_empty(answer):
            if question.required:
                errors.append(f"{question.label} is required")
            continue

        if question.type is QuestionType.SINGLE_SELECT:
            if answer not in question.options:
                errors.append(f"{question.label}: Invalid selection")
        elif question.type is QuestionType.MULTI_SELECT:
            if not isinstance(answer, list):
                errors.append(f"{question.label}: Must be an array")
            else:
                invalid = [option for option in answer if option not in question.options]
                if invalid:
                    errors.append(
                        f"{question.label}: Invalid selections: {', '.join(map(str, invalid))}"
                    )
        elif question.type is QuestionType.ATTACHMENT:
            if not isinstance(answer, list):
                errors.append(f"{question.label}: Must be an array of attachments")
        elif question.type in _TEXT_TYPES and not isinstance(answer, str):
            errors.append(f"{question.label}: Must be a string")
    return errors


def map_answers_to_fields(form: Form, answers: Dict[str, Any]) -> Dict[str, Any]:
    """Map answers onto Airtable field ids, skipping empty answers."""
    fields: Dict[str, Any] = {}
    for question in form.questions:
        answer = answers.get(question.question_key)
        if _is_empty(answer):
            continue
        if question.type is QuestionType.ATTACHMENT:
            fields[question.platform_field_id] = [
                {"url": item.get("url")} if isinstance(item, dict) else {"url": item}
                for item in answer
            ]
        else:
            fields[question.platform_field_id] = answer
    return fields


class DelegatedWriteGate:
    """Write a submission to Airtable as the form owner, then record it locally."""

    def __init__(
        self,
        *,
        vault: CredentialVault,
        records_client: AirtableRecordsClient,
        submissions: SubmissionStore,
    ) -> None:
        self._vault = vault
        self._records = records_client
        self._submissions = submissions

    def resolve_owner(self, form: Form) -> Account:
        """Return the owner account if its credential may be used right now."""
        owner = self._vault.get(form.owner_id)
        if owner is None or not owner.access_token:
            logger.warning("Form %s has no usable owner credential", form.form_id)
            raise DelegationError("Form owner authentication not available")
        if self._vault.is_expired(owner):
            logger.warning(
                "Owner credential for form %s expired at %s",
                form.form_id,
                owner.token_expires_at,
            )
            raise DelegationExpiredError("Form owner authorization has expired")
        return owner

    async def submit(self, form: Form, answers: Dict[str, Any]) -> SubmissionRecord:
        owner = self.resolve_owner(form)

        errors = validate_answers(form, answers)
        if errors:
            raise SubmissionValidationError(errors)

        # RecordWriteError propagates; nothing is stored locally on failure
        external_record_id = await self._records.create_record(
            access_token=owner.access_token,
            base_id=form.base_id,
            table_id=form.table_id,
            fields=map_answers_to_fields(form, answers),
        )

        record = self._submissions.create(
            form_id=form.form_id,
            external_record_id=external_record_id,
            answers=answers,
        )
        logger.info(
            "Stored submission %s for form %s", external_record_id, form.form_id
        )
        return record


__all__ = [
    "DelegatedWriteGate",
    "map_answers_to_fields",
    "validate_answers",
]

"""Edit-form controller for a single patient.

Validation stays local: an update is never sent while a field fails.
Failures are reported as structured :class:`ValidationFailure` values;
turning them into user-facing text is the front end's job.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, Protocol

from pypatients.exceptions import PatientsError
from pypatients.models.patient import Patient
from pypatients.state.store import RecordStore

_logger = logging.getLogger(__name__)

EDITABLE_FIELDS: tuple[str, ...] = ("family_name", "given_name", "sex")

DEFAULT_SUBMIT_ERROR = "Failed to update patient"


class FailureKind(StrEnum):
    REQUIRED = "required"
    TOO_SHORT = "tooShort"
    TOO_LONG = "tooLong"


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationFailure:
    kind: FailureKind
    limit: int | None = None


class Validator(Protocol):
    """Checks one form field; returns ``None`` when the value passes."""

    def validate(self, field: str, value: Any) -> ValidationFailure | None:
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class FieldRule:
    required: bool = True
    min_length: int | None = None
    max_length: int | None = None


class PatientFieldValidator:
    """Length and presence rules of the patient edit form."""

    DEFAULT_RULES: Mapping[str, FieldRule] = {
        "family_name": FieldRule(required=True, min_length=2, max_length=50),
        "given_name": FieldRule(required=True, min_length=2, max_length=50),
        "sex": FieldRule(required=True),
    }

    def __init__(self, rules: Mapping[str, FieldRule] | None = None) -> None:
        self._rules = dict(rules if rules is not None else self.DEFAULT_RULES)

    def validate(self, field: str, value: Any) -> ValidationFailure | None:
        rule = self._rules.get(field)
        if rule is None:
            return None
        text = "" if value is None else str(value)
        if not text.strip():
            return ValidationFailure(FailureKind.REQUIRED) if rule.required else None
        if rule.min_length is not None and len(text) < rule.min_length:
            return ValidationFailure(FailureKind.TOO_SHORT, rule.min_length)
        if rule.max_length is not None and len(text) > rule.max_length:
            return ValidationFailure(FailureKind.TOO_LONG, rule.max_length)
        return None


def _form_values(patient: Patient) -> dict[str, Any]:
    return {
        "family_name": patient.family_name,
        "given_name": patient.given_name,
        "sex": patient.sex.value,
    }


class EditSession:
    """State of the detail/edit modal for one patient."""

    def __init__(self, patient: Patient, store: RecordStore, validator: Validator | None = None) -> None:
        self._patient = patient
        self._store = store
        self._validator: Validator = validator if validator is not None else PatientFieldValidator()
        self._values = _form_values(patient)
        self._touched: set[str] = set()
        self._editing = False
        self._submitting = False
        self.submit_error: str | None = None

    @property
    def patient(self) -> Patient:
        return self._patient

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    @property
    def is_editing(self) -> bool:
        return self._editing

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def can_close(self) -> bool:
        return not self._submitting

    def begin_edit(self) -> None:
        self._editing = True

    def cancel_edit(self) -> None:
        """Leave edit mode and restore the record's values."""
        self._values = _form_values(self._patient)
        self._touched.clear()
        self.submit_error = None
        self._editing = False

    def toggle_edit(self) -> None:
        if self._editing:
            self.cancel_edit()
        else:
            self.begin_edit()

    def set_field(self, field: str, value: Any) -> None:
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"{field!r} is not editable; expected one of {EDITABLE_FIELDS}")
        self._values[field] = value
        self._touched.add(field)

    def errors(self) -> dict[str, ValidationFailure]:
        """Current failure per field, for every field that fails."""
        failures: dict[str, ValidationFailure] = {}
        for field in EDITABLE_FIELDS:
            failure = self._validator.validate(field, self._values.get(field))
            if failure is not None:
                failures[field] = failure
        return failures

    def visible_errors(self) -> dict[str, ValidationFailure]:
        """Failures of fields the user has touched or tried to submit."""
        return {field: failure for field, failure in self.errors().items() if field in self._touched}

    @property
    def is_valid(self) -> bool:
        return not self.errors()

    async def save(self) -> bool:
        """Validate and submit the form.

        Returns ``True`` when the server accepted the update.  The session
        then leaves edit mode and picks up the reloaded record.  On a
        validation failure nothing is sent; on a transport failure the
        session stays in edit mode with :attr:`submit_error` set.
        """
        if not self._editing:
            raise PatientsError("save() called outside edit mode")
        if not self.is_valid:
            self._touched.update(EDITABLE_FIELDS)
            _logger.debug("Not saving patient id=%s: invalid fields %s", self._patient.id, sorted(self.errors()))
            return False

        self._submitting = True
        self.submit_error = None
        try:
            attempt = await self._store.write(self._patient.id, dict(self._values))
        finally:
            self._submitting = False

        if not attempt.succeeded:
            error = attempt.error
            self.submit_error = str(error) if error is not None and str(error) else DEFAULT_SUBMIT_ERROR
            return False

        refreshed = self._store.get(self._patient.id)
        if refreshed is not None:
            self._patient = refreshed
        self._values = _form_values(self._patient)
        self._touched.clear()
        self._editing = False
        return True

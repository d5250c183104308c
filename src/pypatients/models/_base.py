"""Base model for patient API payloads.

Every API model inherits from :class:`PatientsBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` values so the
  field default is used instead.
* Frozen instances: records are replaced wholesale on refresh, never
  mutated in place.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def parse_api_date(value: Any) -> Any:
    """Coerce an API date or datetime string to a calendar :class:`date`.

    The backend sends birth dates either as plain ISO dates or as ISO
    datetimes with a midnight time component; the time part is dropped.
    Anything else is handed to pydantic unchanged so it reports the error.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            return text
    return value


ApiDate = Annotated[date, BeforeValidator(parse_api_date)]
"""Annotated type accepting ISO date or datetime strings."""


class PatientsBaseModel(BaseModel):
    """Base for patient API models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None}

    def to_api(self) -> dict[str, Any]:
        """Serialise with API (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True)

"""Filter, sort and page inputs and the derived view result."""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from pypatients.exceptions import PatientsConfigError
from pypatients.models.patient import Patient


class SortField(StrEnum):
    ID = "id"
    FAMILY_NAME = "family_name"
    GIVEN_NAME = "given_name"
    BIRTH_DATE = "birth_date"
    SEX = "sex"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> SortDirection:
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class FilterCriteria(BaseModel):
    """Filter constraints; an unset field imposes no constraint.

    Instances compare by value, which is what the settled filter stream
    uses to suppress duplicate emissions.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    family_name: str | None = None
    given_name: str | None = None
    sex: str | None = None
    has_alarm: bool | None = None

    @field_validator("family_name", "given_name", "sex", mode="before")
    @classmethod
    def _empty_is_unset(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class SortSpec(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    field: SortField = SortField.FAMILY_NAME
    direction: SortDirection = SortDirection.ASC


class PageSpec(BaseModel):
    """Current page index (1-based) and page size.

    Out-of-range values are programming errors and raise
    :class:`PatientsConfigError` directly rather than a pydantic
    ``ValidationError``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    page_index: int = 1
    page_size: int

    @field_validator("page_index")
    @classmethod
    def _positive_index(cls, value: int) -> int:
        if value < 1:
            raise PatientsConfigError(f"page_index must be >= 1, got {value}")
        return value

    @field_validator("page_size")
    @classmethod
    def _positive_size(cls, value: int) -> int:
        if value <= 0:
            raise PatientsConfigError(f"page_size must be > 0, got {value}")
        return value

    @property
    def offset(self) -> int:
        return (self.page_index - 1) * self.page_size


class ViewResult(BaseModel):
    """One visible page of filtered and sorted patients.

    Derived state: recomputed from the record snapshot and the view inputs,
    never stored as the source of truth.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rows: tuple[Patient, ...] = ()
    total_count: int = 0
    page_index: int = 1
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def page_numbers(self) -> list[int]:
        """Page numbers ``1..total_pages`` for a pager control."""
        return list(range(1, self.total_pages + 1))

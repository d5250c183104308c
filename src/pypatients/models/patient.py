"""Patient and parameter models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from pypatients.models._base import ApiDate, PatientsBaseModel


class Sex(StrEnum):
    """Administrative sex as sent by the API.

    Values the API sends that have no mapped member resolve to ``OTHER``
    instead of failing validation.
    """

    M = "M"
    F = "F"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value: object) -> Sex:
        if isinstance(value, str):
            normalized = value.strip()
            if normalized.upper() in ("M", "F"):
                return cls(normalized.upper())
        return cls.OTHER


class Parameter(PatientsBaseModel):
    """A monitored clinical parameter attached to a patient.

    Only :attr:`alarm` is used by the list view; the remaining fields are
    carried through for display.
    """

    id: int
    alarm: bool = False
    name: str | None = None
    description: str | None = None
    value: float | str | None = None


class Patient(PatientsBaseModel):
    """A patient record.

    Parameters
    ----------
    id : int
        Stable unique identifier.
    family_name : str
        Family (last) name.
    given_name : str
        Given (first) name.
    birth_date : date
        Calendar birth date.
    sex : Sex
        Administrative sex.
    parameters : tuple[Parameter, ...]
        Monitored parameters.
    """

    id: int
    family_name: str = ""
    given_name: str = ""
    birth_date: ApiDate
    sex: Sex = Sex.OTHER
    parameters: tuple[Parameter, ...] = Field(default_factory=tuple)

    @property
    def has_alarm(self) -> bool:
        """Whether any parameter is currently alarming."""
        return any(parameter.alarm for parameter in self.parameters)

    @property
    def display_name(self) -> str:
        return f"{self.family_name} {self.given_name}".strip()


class PatientUpdateRequest(PatientsBaseModel):
    """Body of the single-record update call."""

    id: int
    family_name: str
    given_name: str
    sex: Sex

    @field_validator("family_name", "given_name", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @classmethod
    def from_fields(cls, patient_id: int, fields: dict[str, Any]) -> PatientUpdateRequest:
        """Build a request from snake_case or camelCase field names."""
        return cls.model_validate({"id": patient_id, **fields})

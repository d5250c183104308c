"""Data models for the patient API and the list view."""

from pypatients.models._base import ApiDate, PatientsBaseModel, parse_api_date
from pypatients.models.patient import Parameter, Patient, PatientUpdateRequest, Sex
from pypatients.models.view import FilterCriteria, PageSpec, SortDirection, SortField, SortSpec, ViewResult

__all__ = [
    "ApiDate",
    "FilterCriteria",
    "PageSpec",
    "Parameter",
    "Patient",
    "PatientUpdateRequest",
    "PatientsBaseModel",
    "Sex",
    "SortDirection",
    "SortField",
    "SortSpec",
    "ViewResult",
    "parse_api_date",
]

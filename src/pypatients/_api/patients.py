"""Patient endpoints: /Patient/GetList and /Patient/Update."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pypatients._transport import Transport
from pypatients.exceptions import PatientsUnexpectedError
from pypatients.models.patient import Patient, PatientUpdateRequest

_logger = logging.getLogger(__name__)

LIST_ENDPOINT = "/Patient/GetList"
UPDATE_ENDPOINT = "/Patient/Update"


def parse_patient_list(decoded: Any) -> list[Patient]:
    """Validate the list response.

    Raises
    ------
    PatientsUnexpectedError
        If the body is not a list or any item is not a valid patient.
    """
    if decoded is None:
        return []
    if not isinstance(decoded, list):
        _logger.debug("%s returned %s, expected a list", LIST_ENDPOINT, type(decoded).__name__)
        raise PatientsUnexpectedError(endpoint=LIST_ENDPOINT)
    try:
        return [Patient.model_validate(item) for item in decoded]
    except ValidationError as exc:
        _logger.debug("%s returned a malformed patient: %d error(s)", LIST_ENDPOINT, exc.error_count())
        raise PatientsUnexpectedError(endpoint=LIST_ENDPOINT) from exc


async def fetch_patient_list(transport: Transport) -> list[Patient]:
    """Fetch the full patient list."""
    decoded = await transport.request_json("GET", LIST_ENDPOINT)
    patients = parse_patient_list(decoded)
    _logger.debug("Fetched %d patients", len(patients))
    return patients


async def update_patient(transport: Transport, request: PatientUpdateRequest) -> None:
    """Send a single-record update; the response body is ignored."""
    await transport.request_json("POST", UPDATE_ENDPOINT, request.to_api())
    _logger.debug("Updated patient id=%s", request.id)

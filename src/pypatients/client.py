"""High-level async client for the patient API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp
from pydantic import ValidationError

from pypatients._api import patients as _patients_api
from pypatients._transport import HttpTransport, Transport
from pypatients.config import PatientsConfig
from pypatients.exceptions import PatientsError, PatientsValidationError
from pypatients.models.patient import Patient, PatientUpdateRequest

_logger = logging.getLogger(__name__)


class DataSource(Protocol):
    """Record source consumed by :class:`pypatients.state.store.RecordStore`.

    ``list`` returns the full record set; ``update`` writes one record.
    Both raise a :class:`pypatients.exceptions.PatientsTransportError`
    subclass on failure.
    """

    async def list(self) -> list[Patient]:
        ...

    async def update(self, patient_id: int, fields: Mapping[str, Any]) -> None:
        ...


class PatientsClient:
    """Async client for the patient API.

    Usage::

        async with PatientsClient(config) as client:
            patients = await client.list()
    """

    def __init__(
        self,
        config: PatientsConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config.validate()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    @property
    def config(self) -> PatientsConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PatientsClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
            _logger.debug("Patient client ready for %s", self._config.base_url)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise PatientsError("Client not initialized. Use 'async with PatientsClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # DataSource
    # ------------------------------------------------------------------

    async def list(self) -> list[Patient]:
        """Fetch every patient."""
        return await _patients_api.fetch_patient_list(self._require_transport())

    async def update(self, patient_id: int, fields: Mapping[str, Any]) -> None:
        """Update the editable fields of one patient.

        *fields* accepts snake_case or camelCase keys for ``family_name``,
        ``given_name`` and ``sex``.
        """
        try:
            request = PatientUpdateRequest.from_fields(patient_id, dict(fields))
        except ValidationError as exc:
            raise PatientsValidationError(
                f"Invalid update for patient {patient_id}: {exc.error_count()} error(s)",
                failures={".".join(str(p) for p in err["loc"]): err["msg"] for err in exc.errors()},
            ) from exc
        await _patients_api.update_patient(self._require_transport(), request)

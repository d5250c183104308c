"""Patient list view: wires the store, the view inputs and the pipeline."""

from __future__ import annotations

import logging
from typing import Any

from pypatients.client import DataSource
from pypatients.config import PatientsConfig
from pypatients.editing import EditSession, Validator
from pypatients.models.patient import Patient
from pypatients.models.view import FilterCriteria, SortField, ViewResult
from pypatients.state.store import RecordStore
from pypatients.state.tracker import LoadingErrorTracker
from pypatients.view.controls import PageState, SortState
from pypatients.view.filter import FilterState
from pypatients.view.pipeline import ViewPipeline

_logger = logging.getLogger(__name__)


class PatientListView:
    """Everything a list or grid screen reads from and writes to.

    Usage::

        async with PatientsClient(config) as client:
            async with PatientListView(client, config) as view:
                view.set_filter(family_name="ros")
                rows = view.result.rows
    """

    def __init__(
        self,
        source: DataSource,
        config: PatientsConfig | None = None,
        *,
        validator: Validator | None = None,
    ) -> None:
        self._config = (config if config is not None else PatientsConfig()).validate()
        self._validator = validator
        self.tracker = LoadingErrorTracker()
        self.store = RecordStore(source, self.tracker)
        self.filters = FilterState(self._config.filter_settle_delay)
        self.sort = SortState()
        self.pages = PageState(self._config.page_size)
        self.pipeline = ViewPipeline(self.store, self.filters, self.sort, self.pages)
        self._closed = False

    async def __aenter__(self) -> PatientListView:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Initial load; see :meth:`RecordStore.load`."""
        return await self.store.load()

    async def refresh(self) -> bool:
        return await self.store.load()

    def close(self) -> None:
        """Tear down: unsubscribe the pipeline, stop timers, detach the store."""
        if self._closed:
            return
        self._closed = True
        self.pipeline.close()
        self.filters.close()
        self.sort.close()
        self.pages.close()
        self.store.close()
        self.tracker.close()
        _logger.debug("Patient list view closed")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def result(self) -> ViewResult:
        return self.pipeline.result

    @property
    def rows(self) -> tuple[Patient, ...]:
        return self.pipeline.result.rows

    @property
    def is_loading(self) -> bool:
        return self.tracker.is_loading

    @property
    def error_message(self) -> str | None:
        return self.tracker.error_message

    @property
    def filters_applied(self) -> bool:
        """Whether the filter inputs hold any constraint (settled or not)."""
        return not self.filters.value.is_empty

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def set_filter(self, criteria: FilterCriteria | None = None, **fields: Any) -> FilterCriteria:
        return self.filters.set(criteria, **fields)

    def clear_filters(self) -> None:
        self.filters.clear()

    def toggle_sort(self, field: SortField | str) -> None:
        self.sort.toggle(field)

    def go_to_page(self, page_index: int) -> None:
        self.pages.set_page(page_index)

    def open_editor(self, patient_id: int) -> EditSession:
        """Open the detail/edit session for a patient in the current snapshot."""
        patient = self.store.get(patient_id)
        if patient is None:
            raise ValueError(f"No patient with id={patient_id} in the current snapshot")
        return EditSession(patient, self.store, self._validator)

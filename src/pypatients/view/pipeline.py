"""Derive the visible page from records, filter, sort and page inputs.

The derivation runs in three total steps over the full snapshot:

1. filter: keep patients matching every constraint that is set;
2. sort: stable sort by the active field, descending is the reversed
   ascending order over the same key;
3. paginate: count the filtered set and slice out the requested page.

:class:`ViewPipeline` reruns the derivation synchronously whenever one of
its inputs publishes a change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from pypatients.models.patient import Patient
from pypatients.models.view import FilterCriteria, PageSpec, SortDirection, SortField, SortSpec, ViewResult
from pypatients.state.events import Listener, Notifier, Unsubscribe
from pypatients.state.store import RecordStore
from pypatients.view.controls import PageState, SortState
from pypatients.view.filter import FilterState

_logger = logging.getLogger(__name__)


def _contains(haystack: str, needle: str) -> bool:
    return needle.casefold() in haystack.casefold()


def matches(patient: Patient, criteria: FilterCriteria) -> bool:
    """Whether *patient* satisfies every constraint in *criteria*."""
    if criteria.family_name is not None and not _contains(patient.family_name, criteria.family_name):
        return False
    if criteria.given_name is not None and not _contains(patient.given_name, criteria.given_name):
        return False
    if criteria.sex is not None and patient.sex.value != criteria.sex:
        return False
    return criteria.has_alarm is None or patient.has_alarm == criteria.has_alarm


def apply_filters(patients: Iterable[Patient], criteria: FilterCriteria) -> list[Patient]:
    if criteria.is_empty:
        return list(patients)
    return [patient for patient in patients if matches(patient, criteria)]


def sort_key(field: SortField) -> Callable[[Patient], Any]:
    """Ascending sort key for *field*.

    Strings compare case-insensitively; birth dates compare as dates.
    """
    if field is SortField.ID:
        return lambda patient: patient.id
    if field is SortField.BIRTH_DATE:
        return lambda patient: patient.birth_date
    if field is SortField.SEX:
        return lambda patient: patient.sex.value.casefold()
    attribute = field.value
    return lambda patient: getattr(patient, attribute).casefold()


def apply_sort(patients: Iterable[Patient], spec: SortSpec) -> list[Patient]:
    # sorted() stays stable with reverse=True, so ties keep input order both ways.
    return sorted(patients, key=sort_key(spec.field), reverse=spec.direction is SortDirection.DESC)


def paginate(patients: Sequence[Patient], page: PageSpec) -> ViewResult:
    start = page.offset
    return ViewResult(
        rows=tuple(patients[start : start + page.page_size]),
        total_count=len(patients),
        page_index=page.page_index,
        page_size=page.page_size,
    )


def compute_view(
    patients: Iterable[Patient],
    criteria: FilterCriteria,
    sort: SortSpec,
    page: PageSpec,
) -> ViewResult:
    """Filter, sort and slice *patients* into one visible page."""
    filtered = apply_filters(patients, criteria)
    ordered = apply_sort(filtered, sort)
    return paginate(ordered, page)


class ViewPipeline:
    """Combines the record store and the view inputs into one :class:`ViewResult`.

    A settled filter change moves the page state back to page 1 before the
    result is recomputed, so a new filter always starts from the top.
    """

    def __init__(
        self,
        store: RecordStore,
        filters: FilterState,
        sort: SortState,
        pages: PageState,
    ) -> None:
        self._store = store
        self._filters = filters
        self._sort = sort
        self._pages = pages
        self._closed = False
        self._holding = False
        self._changes: Notifier[ViewResult] = Notifier("view")
        self._result = self._derive()
        self._unsubscribers: list[Unsubscribe] = [
            store.subscribe(self._on_input),
            filters.subscribe(self._on_filter),
            sort.subscribe(self._on_input),
            pages.subscribe(self._on_input),
        ]

    @property
    def result(self) -> ViewResult:
        return self._result

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener[ViewResult]) -> Unsubscribe:
        return self._changes.subscribe(listener)

    def recompute(self) -> ViewResult:
        """Rederive the visible page and notify listeners."""
        if self._closed:
            return self._result
        self._result = self._derive()
        _logger.debug(
            "Recomputed view: page=%d size=%d total=%d rows=%d",
            self._result.page_index,
            self._result.page_size,
            self._result.total_count,
            len(self._result.rows),
        )
        self._changes.publish(self._result)
        return self._result

    def close(self) -> None:
        """Unsubscribe from every input; no recomputation fires afterwards."""
        if self._closed:
            return
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._changes.close()

    def _derive(self) -> ViewResult:
        return compute_view(self._store.current(), self._filters.settled, self._sort.spec, self._pages.spec)

    def _on_input(self, _value: object) -> None:
        if not self._holding:
            self.recompute()

    def _on_filter(self, _criteria: FilterCriteria) -> None:
        # The page reset publishes too; hold it so only one result goes out.
        self._holding = True
        try:
            self._pages.reset()
        finally:
            self._holding = False
        self.recompute()

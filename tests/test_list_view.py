from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import pytest

from pypatients.config import PatientsConfig
from pypatients.editing import EditSession, FailureKind, PatientFieldValidator, ValidationFailure
from pypatients.exceptions import PatientsError, PatientsServerError
from pypatients.models.patient import Parameter, Patient, Sex
from pypatients.models.view import FilterCriteria, SortDirection, SortField, ViewResult
from pypatients.state.tracker import OperationKind
from pypatients.view.list_view import PatientListView

_DELAY = 0.02


async def _settle() -> None:
    await asyncio.sleep(_DELAY * 4)


def _patient(pid: int, family: str, given: str = "Anna", *, alarm: bool = False) -> Patient:
    return Patient(
        id=pid,
        family_name=family,
        given_name=given,
        birth_date=date(1980 + pid, 1, 1),
        sex=Sex.F,
        parameters=(Parameter(id=pid, alarm=alarm),),
    )


@dataclass
class FakeSource:
    patients: list[Patient] = field(default_factory=list)
    update_error: Exception | None = None
    list_calls: int = 0
    updates: list[tuple[int, dict[str, Any]]] = field(default_factory=list)

    async def list(self) -> list[Patient]:
        self.list_calls += 1
        return list(self.patients)

    async def update(self, patient_id: int, fields: Mapping[str, Any]) -> None:
        self.updates.append((patient_id, dict(fields)))
        if self.update_error is not None:
            raise self.update_error
        self.patients = [
            p.model_copy(update={"family_name": fields["family_name"], "given_name": fields["given_name"]})
            if p.id == patient_id
            else p
            for p in self.patients
        ]


def _ward() -> list[Patient]:
    names = ["Rossi", "Bianchi", "Rossi", "Verdi", "Rossi", "Neri", "Russo", "Gallo", "Conti"]
    return [_patient(i, name, alarm=i % 3 == 0) for i, name in enumerate(names, start=1)]


def _config() -> PatientsConfig:
    return PatientsConfig(page_size=2, filter_settle_delay=_DELAY)


@pytest.mark.asyncio
async def test_start_populates_first_page() -> None:
    source = FakeSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        assert view.result.total_count == 9
        assert view.result.page_index == 1
        # Default sort is family name ascending.
        assert [p.family_name for p in view.rows] == ["Bianchi", "Conti"]
        assert not view.is_loading
        assert view.error_message is None


@pytest.mark.asyncio
async def test_settled_filter_resets_page_to_first() -> None:
    source = FakeSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        results: list[ViewResult] = []
        view.pipeline.subscribe(results.append)

        view.go_to_page(3)
        assert view.result.page_index == 3

        view.set_filter(family_name="ros")
        view.set_filter(family_name="ross")
        # Nothing recomputes until the input settles.
        assert view.result.page_index == 3
        assert view.filters_applied

        await _settle()

        assert view.result.page_index == 1
        assert view.result.total_count == 3
        assert [p.id for p in view.rows] == [1, 3]
        # Page change, then exactly one result for the settled filter.
        assert [r.page_index for r in results] == [3, 1]


@pytest.mark.asyncio
async def test_sort_and_page_changes_do_not_refetch() -> None:
    source = FakeSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        original = view.rows

        view.toggle_sort(SortField.FAMILY_NAME)
        assert view.sort.spec.direction is SortDirection.DESC
        assert [p.family_name for p in view.rows] == ["Verdi", "Russo"]

        view.toggle_sort(SortField.FAMILY_NAME)
        assert view.rows == original

        view.go_to_page(2)
        view.go_to_page(50)
        assert view.rows == ()
        assert view.result.total_count == 9

        assert source.list_calls == 1


@pytest.mark.asyncio
async def test_clear_filters_applies_immediately() -> None:
    source = FakeSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        view.set_filter(FilterCriteria(has_alarm=True))
        await _settle()
        assert view.result.total_count == 3

        view.clear_filters()

        assert not view.filters_applied
        assert view.result.total_count == 9


@pytest.mark.asyncio
async def test_refresh_keeps_view_inputs() -> None:
    source = FakeSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        view.set_filter(family_name="rossi")
        await _settle()
        source.patients = [*source.patients, _patient(10, "Rossini")]

        assert await view.refresh() is True

        assert view.result.total_count == 4
        assert view.filters.settled == FilterCriteria(family_name="rossi")


@pytest.mark.asyncio
async def test_close_unsubscribes_everything() -> None:
    source = FakeSource(patients=_ward())
    view = PatientListView(source, _config())
    await view.start()
    results: list[ViewResult] = []
    view.pipeline.subscribe(results.append)
    view.set_filter(family_name="verdi")

    view.close()
    await _settle()
    view.go_to_page(2)
    await view.store.load()

    assert results == []
    assert view.result.total_count == 9
    assert view.pipeline.closed


# ------------------------------------------------------------------
# Editing
# ------------------------------------------------------------------


def test_default_validator_rules() -> None:
    validator = PatientFieldValidator()
    assert validator.validate("family_name", "") == ValidationFailure(FailureKind.REQUIRED)
    assert validator.validate("family_name", "R") == ValidationFailure(FailureKind.TOO_SHORT, 2)
    assert validator.validate("given_name", "x" * 51) == ValidationFailure(FailureKind.TOO_LONG, 50)
    assert validator.validate("sex", None) == ValidationFailure(FailureKind.REQUIRED)
    assert validator.validate("given_name", "Al") is None
    assert validator.validate("unknown", "") is None


@pytest.mark.asyncio
async def test_invalid_form_never_reaches_the_source() -> None:
    source = FakeSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        session = view.open_editor(1)
        session.begin_edit()
        session.set_field("family_name", "R")

        assert not session.is_valid
        assert session.visible_errors() == {"family_name": ValidationFailure(FailureKind.TOO_SHORT, 2)}
        assert await session.save() is False

        assert source.updates == []
        assert session.is_editing


@pytest.mark.asyncio
async def test_server_error_keeps_form_open() -> None:
    source = FakeSource(patients=_ward(), update_error=PatientsServerError("Internal server error", status_code=500))
    async with PatientListView(source, _config()) as view:
        snapshot = view.store.current()
        session = view.open_editor(2)
        session.begin_edit()
        session.set_field("family_name", "Bianco")

        assert await session.save() is False

        assert session.is_editing
        assert not session.is_submitting
        assert session.can_close
        assert session.submit_error == "Internal server error"
        assert session.values["family_name"] == "Bianco"
        assert view.store.current() is snapshot
        assert view.error_message == "Internal server error"
        assert source.list_calls == 1


@pytest.mark.asyncio
async def test_successful_save_reloads_and_leaves_edit_mode() -> None:
    source = FakeSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        session = view.open_editor(2)
        session.begin_edit()
        session.set_field("family_name", "Abate")
        session.set_field("given_name", "Giulia")

        assert session.is_valid
        assert await session.save() is True

        assert source.updates == [(2, {"family_name": "Abate", "given_name": "Giulia", "sex": "F"})]
        assert source.list_calls == 2
        assert not session.is_editing
        assert session.patient.family_name == "Abate"
        assert [p.family_name for p in view.rows] == ["Abate", "Conti"]


@pytest.mark.asyncio
async def test_cancel_edit_restores_values() -> None:
    source = FakeSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        session: EditSession = view.open_editor(4)
        session.toggle_edit()
        session.set_field("given_name", "")
        session.toggle_edit()

        assert not session.is_editing
        assert session.values["given_name"] == "Anna"
        assert session.submit_error is None

        with pytest.raises(PatientsError):
            await session.save()
        with pytest.raises(ValueError):
            session.set_field("birth_date", "2000-01-01")
        with pytest.raises(ValueError):
            view.open_editor(404)


@dataclass
class GatedUpdateSource(FakeSource):
    """Updates to ``failing_id`` fail at once; the rest wait for ``gate``."""

    failing_id: int = 2
    gate: asyncio.Event = field(default_factory=asyncio.Event)

    async def update(self, patient_id: int, fields: Mapping[str, Any]) -> None:
        if patient_id == self.failing_id:
            raise PatientsServerError(status_code=500, endpoint="/Patient/Update")
        await self.gate.wait()
        await super().update(patient_id, fields)


@pytest.mark.asyncio
async def test_overlapping_saves_report_their_own_error() -> None:
    source = GatedUpdateSource(patients=_ward())
    async with PatientListView(source, _config()) as view:
        slow = view.open_editor(4)
        slow.begin_edit()
        slow.set_field("given_name", "Lucia")
        failing = view.open_editor(2)
        failing.begin_edit()
        failing.set_field("family_name", "Bianco")

        slow_task = asyncio.create_task(slow.save())
        await asyncio.sleep(0)
        assert slow.is_submitting

        assert await failing.save() is False
        # The other update keeps the kind in flight with no error recorded yet.
        assert view.tracker.is_in_flight(OperationKind.UPDATE)
        assert failing.submit_error == "Internal server error. Please try again later."
        assert failing.is_editing

        source.gate.set()
        assert await slow_task is True
        assert slow.submit_error is None
        assert view.store.get(4).given_name == "Lucia"  # type: ignore[union-attr]

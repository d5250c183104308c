from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import pytest

from pypatients.exceptions import PatientsConfigError, PatientsServerError, PatientsUnauthorizedError
from pypatients.models.patient import Patient
from pypatients.state.store import RecordStore
from pypatients.state.tracker import LoadingErrorTracker, OperationKind, OperationState, OperationStatus


def _patient(pid: int, family: str = "Rossi") -> Patient:
    return Patient(id=pid, family_name=family, given_name="Anna", birth_date=date(1990, 1, 1))


@dataclass
class FakeSource:
    patients: list[Patient] = field(default_factory=list)
    list_error: Exception | None = None
    update_error: Exception | None = None
    list_calls: int = 0
    updates: list[tuple[int, dict[str, Any]]] = field(default_factory=list)

    async def list(self) -> list[Patient]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.patients)

    async def update(self, patient_id: int, fields: Mapping[str, Any]) -> None:
        self.updates.append((patient_id, dict(fields)))
        if self.update_error is not None:
            raise self.update_error
        self.patients = [
            p.model_copy(update={"family_name": fields["family_name"]}) if p.id == patient_id else p
            for p in self.patients
        ]


class GatedSource:
    """Each list() call blocks until its gate is released."""

    def __init__(self) -> None:
        self.gates: list[tuple[asyncio.Event, list[Patient]]] = []

    def add(self, patients: list[Patient]) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates.append((gate, patients))
        return gate

    async def list(self) -> list[Patient]:
        gate, patients = self.gates.pop(0)
        await gate.wait()
        return patients

    async def update(self, patient_id: int, fields: Mapping[str, Any]) -> None:
        return None


# ------------------------------------------------------------------
# load
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_load_replaces_snapshot_and_notifies() -> None:
    source = FakeSource(patients=[_patient(1), _patient(2)])
    store = RecordStore(source)
    snapshots: list[tuple[Patient, ...]] = []
    store.subscribe(snapshots.append)

    assert store.current() == ()
    assert await store.load() is True

    assert [p.id for p in store.current()] == [1, 2]
    assert store.revision == 1
    assert snapshots == [store.current()]

    source.patients = [_patient(3)]
    await store.load()
    assert [p.id for p in store.current()] == [3]
    assert store.revision == 2


@pytest.mark.asyncio
async def test_failed_load_keeps_previous_snapshot() -> None:
    source = FakeSource(patients=[_patient(1)])
    tracker = LoadingErrorTracker()
    store = RecordStore(source, tracker)
    await store.load()
    previous = store.current()

    source.list_error = PatientsUnauthorizedError("Authentication failed", status_code=401, endpoint="/Patient/GetList")
    assert await store.load() is False

    assert store.current() is previous
    assert store.revision == 1
    assert tracker.is_errored(OperationKind.LOAD)
    assert isinstance(tracker.last_error, PatientsUnauthorizedError)
    assert tracker.error_message == "Authentication failed"


@pytest.mark.asyncio
async def test_non_transport_errors_propagate() -> None:
    tracker = LoadingErrorTracker()
    store = RecordStore(FakeSource(list_error=PatientsConfigError("bad")), tracker)

    with pytest.raises(PatientsConfigError):
        await store.load()

    assert tracker.state(OperationKind.LOAD).status is OperationStatus.IDLE


@pytest.mark.asyncio
async def test_reads_see_old_snapshot_while_load_in_flight() -> None:
    source = GatedSource()
    store = RecordStore(source)
    first = source.add([_patient(1)])
    first.set()
    await store.load()

    gate = source.add([_patient(2)])
    task = asyncio.create_task(store.load())
    await asyncio.sleep(0)

    assert store.tracker.is_in_flight(OperationKind.LOAD)
    assert [p.id for p in store.current()] == [1]

    gate.set()
    await task
    assert [p.id for p in store.current()] == [2]
    assert not store.tracker.is_loading


@pytest.mark.asyncio
async def test_older_load_finishing_last_is_discarded() -> None:
    source = GatedSource()
    store = RecordStore(source)
    slow = source.add([_patient(1, "Old")])
    fast = source.add([_patient(1, "New")])

    slow_task = asyncio.create_task(store.load())
    fast_task = asyncio.create_task(store.load())
    await asyncio.sleep(0)

    fast.set()
    assert await fast_task is True
    slow.set()
    assert await slow_task is False

    assert store.current()[0].family_name == "New"
    assert store.revision == 1


@pytest.mark.asyncio
async def test_load_completing_after_close_is_discarded() -> None:
    source = GatedSource()
    store = RecordStore(source)
    snapshots: list[tuple[Patient, ...]] = []
    store.subscribe(snapshots.append)
    gate = source.add([_patient(1)])

    task = asyncio.create_task(store.load())
    await asyncio.sleep(0)
    store.close()
    gate.set()

    assert await task is False
    assert store.current() == ()
    assert snapshots == []


# ------------------------------------------------------------------
# update
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_successful_update_reloads_instead_of_patching() -> None:
    source = FakeSource(patients=[_patient(1, "Rossi"), _patient(2, "Verdi")])
    store = RecordStore(source)
    await store.load()
    before = store.current()[0]

    assert await store.update(1, {"family_name": "Bianchi", "given_name": "Anna", "sex": "F"}) is True

    assert source.list_calls == 2
    assert store.revision == 2
    assert store.get(1) is not None
    assert store.get(1).family_name == "Bianchi"  # type: ignore[union-attr]
    assert before.family_name == "Rossi"


@pytest.mark.asyncio
async def test_failed_update_leaves_snapshot_and_reports_error() -> None:
    source = FakeSource(patients=[_patient(1)])
    store = RecordStore(source)
    await store.load()
    snapshot = store.current()

    source.update_error = PatientsServerError("Internal server error", status_code=500, endpoint="/Patient/Update")
    assert await store.update(1, {"family_name": "Bianchi"}) is False

    assert store.current() is snapshot
    assert source.list_calls == 1
    assert store.tracker.is_errored(OperationKind.UPDATE)
    assert not store.tracker.is_errored(OperationKind.LOAD)


@pytest.mark.asyncio
async def test_write_returns_this_calls_error() -> None:
    source = FakeSource(patients=[_patient(1)])
    store = RecordStore(source)
    await store.load()
    error = PatientsServerError(status_code=502, endpoint="/Patient/Update")
    source.update_error = error

    attempt = await store.write(1, {"family_name": "Bianchi"})

    assert attempt.succeeded is False
    assert attempt.error is error
    assert str(error) == "Internal server error. Please try again later."


# ------------------------------------------------------------------
# tracker
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_tracker_transitions_and_clear_error() -> None:
    tracker = LoadingErrorTracker()
    seen: list[OperationState] = []
    tracker.subscribe(seen.append)

    async with tracker.track(OperationKind.UPDATE) as attempt:
        assert tracker.is_in_flight(OperationKind.UPDATE)
        assert not tracker.is_in_flight(OperationKind.LOAD)
        raise PatientsServerError("boom", status_code=503)

    assert attempt.succeeded is False
    assert [state.status for state in seen] == [OperationStatus.IN_FLIGHT, OperationStatus.ERRORED]

    async with tracker.track(OperationKind.LOAD) as load_attempt:
        pass
    assert load_attempt.succeeded is True
    # A successful load does not clear an unrelated update error.
    assert tracker.is_errored(OperationKind.UPDATE)

    tracker.clear_error()
    assert tracker.last_error is None
    assert tracker.state(OperationKind.UPDATE).status is OperationStatus.IDLE


@pytest.mark.asyncio
async def test_tracker_reports_most_recent_error() -> None:
    tracker = LoadingErrorTracker()
    async with tracker.track(OperationKind.LOAD):
        raise PatientsServerError("load failed")
    async with tracker.track(OperationKind.UPDATE):
        raise PatientsServerError("update failed")

    assert tracker.error_message == "update failed"


@pytest.mark.asyncio
async def test_overlapping_operations_of_different_kinds_are_independent() -> None:
    tracker = LoadingErrorTracker()
    release = asyncio.Event()

    async def _update() -> None:
        async with tracker.track(OperationKind.UPDATE):
            await release.wait()

    task = asyncio.create_task(_update())
    await asyncio.sleep(0)
    async with tracker.track(OperationKind.LOAD):
        pass

    assert tracker.state(OperationKind.LOAD).status is OperationStatus.IDLE
    assert tracker.is_in_flight(OperationKind.UPDATE)
    assert tracker.is_loading

    release.set()
    await task
    assert not tracker.is_loading

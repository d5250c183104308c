"""In-memory patient record store.

This is the only component that talks to the data source.  Every refresh
replaces the whole snapshot; records are never patched locally, not even
after a successful update.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping
from typing import Any

from pypatients.client import DataSource
from pypatients.models.patient import Patient
from pypatients.state.events import Listener, Notifier, Unsubscribe
from pypatients.state.tracker import Attempt, LoadingErrorTracker, OperationKind

_logger = logging.getLogger(__name__)

Snapshot = tuple[Patient, ...]


class RecordStore:
    """Latest server-confirmed patient snapshot plus a revision counter.

    Reads never block: while a load or update is in flight, :meth:`current`
    keeps returning the previous snapshot.
    """

    def __init__(self, source: DataSource, tracker: LoadingErrorTracker | None = None) -> None:
        self._source = source
        self._tracker = tracker if tracker is not None else LoadingErrorTracker()
        self._snapshot: Snapshot = ()
        self._revision = 0
        self._load_sequence = itertools.count(1)
        self._applied_sequence = 0
        self._closed = False
        self._changes: Notifier[Snapshot] = Notifier("record store")

    @property
    def tracker(self) -> LoadingErrorTracker:
        return self._tracker

    @property
    def revision(self) -> int:
        """Number of snapshots applied so far."""
        return self._revision

    @property
    def closed(self) -> bool:
        return self._closed

    def current(self) -> Snapshot:
        return self._snapshot

    def get(self, patient_id: int) -> Patient | None:
        for patient in self._snapshot:
            if patient.id == patient_id:
                return patient
        return None

    def subscribe(self, listener: Listener[Snapshot]) -> Unsubscribe:
        return self._changes.subscribe(listener)

    async def load(self) -> bool:
        """Fetch the full record set and replace the snapshot.

        Returns ``True`` when a new snapshot was applied.  On a transport
        failure the previous snapshot stays in place, the tracker reports the
        error and ``False`` is returned.  Responses that arrive after
        :meth:`close`, or after a newer load already applied, are discarded.
        """
        sequence = next(self._load_sequence)
        async with self._tracker.track(OperationKind.LOAD) as attempt:
            patients = await self._source.list()
        if not attempt.succeeded:
            return False
        if self._closed:
            _logger.debug("Discarding load #%d: store closed", sequence)
            return False
        if sequence < self._applied_sequence:
            _logger.debug("Discarding load #%d: #%d already applied", sequence, self._applied_sequence)
            return False

        self._applied_sequence = sequence
        self._snapshot = tuple(patients)
        self._revision += 1
        _logger.debug("Applied snapshot revision=%d with %d patients", self._revision, len(self._snapshot))
        self._changes.publish(self._snapshot)
        return True

    async def update(self, patient_id: int, fields: Mapping[str, Any]) -> bool:
        """Write one record, then reload on success.

        Returns ``True`` when the server accepted the write.  A failed write
        leaves the snapshot untouched and is reported by the tracker.
        """
        attempt = await self.write(patient_id, fields)
        return attempt.succeeded

    async def write(self, patient_id: int, fields: Mapping[str, Any]) -> Attempt:
        """Like :meth:`update`, but return this call's own :class:`Attempt`.

        The attempt carries the error of this write even when other updates
        overlap and the tracker still reports the kind as in flight.
        """
        async with self._tracker.track(OperationKind.UPDATE) as attempt:
            await self._source.update(patient_id, fields)
        if not attempt.succeeded:
            return attempt
        if self._closed:
            _logger.debug("Update of patient id=%s confirmed after close; skipping reload", patient_id)
            return attempt
        await self.load()
        return attempt

    def close(self) -> None:
        """Detach the store; later results are dropped."""
        self._closed = True
        self._changes.close()

"""Loading and error state for fetch and update operations."""

from __future__ import annotations

import contextlib
import itertools
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import StrEnum

from pypatients.exceptions import PatientsTransportError
from pypatients.state.events import Listener, Notifier, Unsubscribe

_logger = logging.getLogger(__name__)


class OperationKind(StrEnum):
    LOAD = "load"
    UPDATE = "update"


class OperationStatus(StrEnum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    ERRORED = "errored"


@dataclass(frozen=True, slots=True)
class OperationState:
    kind: OperationKind
    status: OperationStatus = OperationStatus.IDLE
    error: PatientsTransportError | None = None
    # Monotonic sequence of the transition that produced this state.
    sequence: int = 0


@dataclass(slots=True)
class Attempt:
    """Outcome of one tracked operation, filled in when the block exits."""

    kind: OperationKind
    succeeded: bool = False
    error: PatientsTransportError | None = None


class LoadingErrorTracker:
    """Track ``idle -> in_flight -> (idle | errored)`` per operation kind.

    Operations of different kinds are independent: a load started while an
    update is in flight does not wait for it.  Several operations of the
    same kind may overlap; the kind stays in flight until the last one ends
    and that one decides the final status.
    """

    def __init__(self) -> None:
        self._sequence = itertools.count(1)
        self._states: dict[OperationKind, OperationState] = {kind: OperationState(kind) for kind in OperationKind}
        self._in_flight: dict[OperationKind, int] = dict.fromkeys(OperationKind, 0)
        self._changes: Notifier[OperationState] = Notifier("tracker")

    def state(self, kind: OperationKind) -> OperationState:
        return self._states[kind]

    def is_in_flight(self, kind: OperationKind) -> bool:
        return self._states[kind].status is OperationStatus.IN_FLIGHT

    def is_errored(self, kind: OperationKind) -> bool:
        return self._states[kind].status is OperationStatus.ERRORED

    @property
    def is_loading(self) -> bool:
        return any(state.status is OperationStatus.IN_FLIGHT for state in self._states.values())

    @property
    def last_error(self) -> PatientsTransportError | None:
        """The most recent error among currently errored operations."""
        errored = [state for state in self._states.values() if state.error is not None]
        if not errored:
            return None
        return max(errored, key=lambda state: state.sequence).error

    @property
    def error_message(self) -> str | None:
        error = self.last_error
        return str(error) if error is not None else None

    def subscribe(self, listener: Listener[OperationState]) -> Unsubscribe:
        return self._changes.subscribe(listener)

    def clear_error(self, kind: OperationKind | None = None) -> None:
        """Return errored operations to idle."""
        kinds = [kind] if kind is not None else list(OperationKind)
        for item in kinds:
            if self._states[item].status is OperationStatus.ERRORED:
                self._transition(item, OperationStatus.IDLE, None)

    def close(self) -> None:
        self._changes.close()

    def _transition(
        self,
        kind: OperationKind,
        status: OperationStatus,
        error: PatientsTransportError | None,
    ) -> None:
        state = OperationState(kind=kind, status=status, error=error, sequence=next(self._sequence))
        self._states[kind] = state
        self._changes.publish(state)

    @contextlib.asynccontextmanager
    async def track(self, kind: OperationKind) -> AsyncIterator[Attempt]:
        """Run a block as one tracked operation.

        Transport errors raised inside the block are recorded and absorbed;
        inspect the yielded :class:`Attempt` to learn the outcome.  Any other
        exception (configuration errors, cancellation) propagates after the
        in-flight count is released.
        """
        attempt = Attempt(kind=kind)
        self._in_flight[kind] += 1
        self._transition(kind, OperationStatus.IN_FLIGHT, None)
        try:
            yield attempt
        except PatientsTransportError as exc:
            attempt.error = exc
            _logger.debug("%s failed: %s", kind, exc)
        else:
            attempt.succeeded = True
        finally:
            self._in_flight[kind] -= 1
            if self._in_flight[kind] == 0:
                status = OperationStatus.ERRORED if attempt.error is not None else OperationStatus.IDLE
                self._transition(kind, status, attempt.error)

"""Filter criteria with a settle delay.

The raw value follows every keystroke.  The settled value, which is what
the pipeline listens to, only moves once the input has been quiet for the
settle delay, and only when it actually changed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pypatients._redact import redact_for_log
from pypatients.exceptions import PatientsConfigError
from pypatients.models.view import FilterCriteria
from pypatients.state.events import Listener, Notifier, Unsubscribe

_logger = logging.getLogger(__name__)


def _coerce(
    current: FilterCriteria,
    criteria: FilterCriteria | Mapping[str, Any] | None,
    fields: dict[str, Any],
) -> FilterCriteria:
    if isinstance(criteria, FilterCriteria):
        base = criteria.model_dump()
    elif criteria is None:
        base = current.model_dump()
    else:
        base = dict(criteria)
    base.update(fields)
    return FilterCriteria.model_validate(base)


class FilterState:
    """Holds filter criteria and publishes settled values.

    Timers run on the asyncio event loop that is running when :meth:`set`
    is called.  A zero settle delay publishes synchronously and needs no
    loop.
    """

    def __init__(self, settle_delay: float = 0.3) -> None:
        if settle_delay < 0:
            raise PatientsConfigError(f"settle_delay must not be negative, got {settle_delay}")
        self._settle_delay = settle_delay
        self._value = FilterCriteria()
        self._settled = FilterCriteria()
        self._timer: asyncio.TimerHandle | None = None
        self._settled_changes: Notifier[FilterCriteria] = Notifier("settled filter")

    @property
    def settle_delay(self) -> float:
        return self._settle_delay

    @property
    def value(self) -> FilterCriteria:
        """Latest criteria, including ones not settled yet."""
        return self._value

    @property
    def settled(self) -> FilterCriteria:
        """Last published criteria."""
        return self._settled

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def subscribe(self, listener: Listener[FilterCriteria]) -> Unsubscribe:
        """Listen to settled criteria."""
        return self._settled_changes.subscribe(listener)

    def set(self, criteria: FilterCriteria | Mapping[str, Any] | None = None, **fields: Any) -> FilterCriteria:
        """Store new criteria and restart the settle timer.

        Keyword fields override the matching keys of *criteria*, or of the
        current value when *criteria* is omitted.  Calls that
        arrive within one quiet period supersede each other; only the last
        value is ever published.

        Raises
        ------
        PatientsConfigError
            If the settle delay is non-zero and no event loop is running.
            The stored criteria are left unchanged.
        """
        value = _coerce(self._value, criteria, fields)
        loop: asyncio.AbstractEventLoop | None = None
        if self._settle_delay > 0:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise PatientsConfigError("FilterState.set() with a settle delay needs a running event loop") from exc

        self._value = value
        self._cancel_timer()
        if loop is None:
            self._settle()
        else:
            self._timer = loop.call_later(self._settle_delay, self._settle)
        return self._value

    def clear(self) -> None:
        """Drop every constraint and publish at once, skipping the delay."""
        self._cancel_timer()
        self._value = FilterCriteria()
        self._settle()

    def flush(self) -> None:
        """Publish a pending value now instead of waiting for the timer."""
        if self._timer is not None:
            self._cancel_timer()
            self._settle()

    def close(self) -> None:
        self._cancel_timer()
        self._settled_changes.close()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _settle(self) -> None:
        self._timer = None
        if self._value == self._settled:
            return
        self._settled = self._value
        _logger.debug("Filter settled: %s", redact_for_log(self._settled.model_dump(exclude_none=True)))
        self._settled_changes.publish(self._settled)

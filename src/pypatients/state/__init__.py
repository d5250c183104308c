"""State layer.

Holds the server-confirmed record snapshot, the change notification bus and
the loading/error tracker.  Only :class:`RecordStore` talks to the data
source.
"""

from pypatients.state.events import Notifier
from pypatients.state.store import RecordStore
from pypatients.state.tracker import Attempt, LoadingErrorTracker, OperationKind, OperationState, OperationStatus

__all__ = [
    "Attempt",
    "LoadingErrorTracker",
    "Notifier",
    "OperationKind",
    "OperationState",
    "OperationStatus",
    "RecordStore",
]

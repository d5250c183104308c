"""pypatients - Async client and list-view core for a patient records API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pypatients")
except PackageNotFoundError:
    __version__ = "0+local"
from pypatients.client import DataSource, PatientsClient
from pypatients.config import PatientsConfig
from pypatients.editing import (
    EditSession,
    FailureKind,
    PatientFieldValidator,
    ValidationFailure,
    Validator,
)
from pypatients.exceptions import (
    PatientsConfigError,
    PatientsError,
    PatientsNotFoundError,
    PatientsServerError,
    PatientsTransportError,
    PatientsUnauthorizedError,
    PatientsUnexpectedError,
    PatientsValidationError,
)
from pypatients.models import (
    FilterCriteria,
    PageSpec,
    Parameter,
    Patient,
    PatientUpdateRequest,
    Sex,
    SortDirection,
    SortField,
    SortSpec,
    ViewResult,
)
from pypatients.state import LoadingErrorTracker, OperationKind, OperationStatus, RecordStore
from pypatients.view import FilterState, PageState, PatientListView, SortState, ViewPipeline

__all__ = [
    "__version__",
    "DataSource",
    "EditSession",
    "FailureKind",
    "FilterCriteria",
    "FilterState",
    "LoadingErrorTracker",
    "OperationKind",
    "OperationStatus",
    "PageSpec",
    "PageState",
    "Parameter",
    "Patient",
    "PatientFieldValidator",
    "PatientListView",
    "PatientUpdateRequest",
    "PatientsClient",
    "PatientsConfig",
    "PatientsConfigError",
    "PatientsError",
    "PatientsNotFoundError",
    "PatientsServerError",
    "PatientsTransportError",
    "PatientsUnauthorizedError",
    "PatientsUnexpectedError",
    "PatientsValidationError",
    "RecordStore",
    "Sex",
    "SortDirection",
    "SortField",
    "SortSpec",
    "SortState",
    "ValidationFailure",
    "Validator",
    "ViewPipeline",
    "ViewResult",
]

"""Collection-view layer: filter, sort and page inputs and the pipeline."""

from pypatients.view.controls import PageState, SortState
from pypatients.view.filter import FilterState
from pypatients.view.list_view import PatientListView
from pypatients.view.pipeline import ViewPipeline, apply_filters, apply_sort, compute_view, paginate

__all__ = [
    "FilterState",
    "PageState",
    "PatientListView",
    "SortState",
    "ViewPipeline",
    "apply_filters",
    "apply_sort",
    "compute_view",
    "paginate",
]

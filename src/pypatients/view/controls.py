"""Sort and page state holders."""

from __future__ import annotations

from pypatients.models.view import PageSpec, SortDirection, SortField, SortSpec
from pypatients.state.events import Listener, Notifier, Unsubscribe


class SortState:
    """The single active sort field and direction."""

    def __init__(self, spec: SortSpec | None = None) -> None:
        self._spec = spec if spec is not None else SortSpec()
        self._changes: Notifier[SortSpec] = Notifier("sort")

    @property
    def spec(self) -> SortSpec:
        return self._spec

    def subscribe(self, listener: Listener[SortSpec]) -> Unsubscribe:
        return self._changes.subscribe(listener)

    def toggle(self, field: SortField | str) -> SortSpec:
        """Flip direction on the active field, otherwise sort ascending by *field*."""
        field = SortField(field)
        if field == self._spec.field:
            spec = SortSpec(field=field, direction=self._spec.direction.flipped())
        else:
            spec = SortSpec(field=field, direction=SortDirection.ASC)
        return self.set(spec)

    def set(self, spec: SortSpec) -> SortSpec:
        if spec != self._spec:
            self._spec = spec
            self._changes.publish(spec)
        return self._spec

    def direction_for(self, field: SortField | str) -> SortDirection | None:
        """Direction shown on a column header, ``None`` for inactive columns."""
        if SortField(field) != self._spec.field:
            return None
        return self._spec.direction

    def close(self) -> None:
        self._changes.close()


class PageState:
    """Current page index and page size.

    Page indexes are not clamped against the data; a page past the end
    simply renders no rows.
    """

    def __init__(self, page_size: int, page_index: int = 1) -> None:
        self._spec = PageSpec(page_index=page_index, page_size=page_size)
        self._changes: Notifier[PageSpec] = Notifier("page")

    @property
    def spec(self) -> PageSpec:
        return self._spec

    @property
    def page_index(self) -> int:
        return self._spec.page_index

    @property
    def page_size(self) -> int:
        return self._spec.page_size

    def subscribe(self, listener: Listener[PageSpec]) -> Unsubscribe:
        return self._changes.subscribe(listener)

    def set_page(self, page_index: int) -> PageSpec:
        return self._replace(PageSpec(page_index=page_index, page_size=self._spec.page_size))

    def set_page_size(self, page_size: int) -> PageSpec:
        """Change the page size and go back to the first page."""
        return self._replace(PageSpec(page_index=1, page_size=page_size))

    def reset(self) -> PageSpec:
        return self.set_page(1)

    def close(self) -> None:
        self._changes.close()

    def _replace(self, spec: PageSpec) -> PageSpec:
        if spec != self._spec:
            self._spec = spec
            self._changes.publish(spec)
        return self._spec

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass

from rowforge.backend import DatasetBackend
from rowforge.dataset_model import RowPage
from rowforge.error_contract import OperationOutcome, coerce_actionable_message, format_actionable_error
from rowforge.row_store import RowColumnStore

__all__ = ["PageRequest", "PageState", "PaginationCoordinator"]

logger = logging.getLogger("pagination")

_CONTEXT = "Row pages"

# Streamed row ids already counted since the last page load.
_COUNTED_ROW_MEMORY = 1000


@dataclass(frozen=True)
class PageState:
    page: int = 1
    page_size: int = 100
    total_rows: int = 0
    has_next: bool = False
    has_previous: bool = False

    @property
    def total_pages(self) -> int:
        if self.total_rows <= 0:
            return 0
        return (self.total_rows + self.page_size - 1) // self.page_size


@dataclass(frozen=True)
class PageRequest:
    sequence: int
    dataset_id: str
    page: int
    page_size: int


def _flags(page: int, page_size: int, total_rows: int) -> tuple[bool, bool]:
    return page * page_size < total_rows, page > 1


class PaginationCoordinator:
    """
    Maps 1-based page requests onto backend fetches and keeps the page
    counters in step with rows streamed in or deleted locally.

    A fetch is split into begin_fetch/apply_page so a result that arrives
    after the selection changed, or after a newer fetch started, is dropped.
    """

    def __init__(
        self,
        backend: DatasetBackend,
        store: RowColumnStore,
        *,
        page_size: int = 100,
        page_capacity: int | None = None,
    ) -> None:
        self._backend = backend
        self._store = store
        self.page_capacity = int(page_capacity if page_capacity is not None else store.page_capacity)
        self._sequence = 0
        self._counted_rows: OrderedDict[str, None] = OrderedDict()
        self.state = PageState(page=1, page_size=min(max(1, int(page_size)), self.page_capacity))

    def reset(self) -> None:
        """Forget counters and invalidate any fetch still in flight."""
        self._sequence += 1
        self.state = PageState(page=1, page_size=self.state.page_size)
        self._counted_rows.clear()

    def _invalid(self, location: str, issue: str, hint: str) -> OperationOutcome:
        return OperationOutcome(ok=False, error=format_actionable_error(_CONTEXT, location, issue, hint))

    def begin_fetch(self, page: int, page_size: int | None = None) -> PageRequest:
        dataset_id = self._store.dataset_id
        if not dataset_id:
            raise ValueError(
                format_actionable_error(_CONTEXT, "Dataset", "no dataset selected", "select a dataset first")
            )
        if int(page) < 1:
            raise ValueError(
                format_actionable_error(_CONTEXT, "Page", f"value {page} must be >= 1", "pages are numbered from 1")
            )
        size = self.state.page_size if page_size is None else int(page_size)
        if size < 1:
            raise ValueError(
                format_actionable_error(_CONTEXT, "Page size", f"value {size} must be >= 1", "use a positive page size")
            )
        self._sequence += 1
        return PageRequest(
            sequence=self._sequence,
            dataset_id=dataset_id,
            page=int(page),
            page_size=min(size, self.page_capacity),
        )

    def is_current(self, request: PageRequest) -> bool:
        return request.sequence == self._sequence and request.dataset_id == self._store.dataset_id

    def apply_page(self, request: PageRequest, result: RowPage) -> bool:
        """Install a fetched page unless it has been superseded."""
        if not self.is_current(request):
            logger.debug(
                "Discarding stale page %d for dataset '%s' (fetch #%d)",
                request.page, request.dataset_id, request.sequence,
            )
            return False

        total_rows = max(0, int(result.total_rows))
        has_next, has_previous = _flags(request.page, request.page_size, total_rows)
        self._store.set_rows(list(result.rows)[: request.page_size])
        self._counted_rows.clear()
        self.state = PageState(
            page=request.page,
            page_size=request.page_size,
            total_rows=total_rows,
            has_next=bool(result.has_next) or has_next,
            has_previous=has_previous,
        )
        logger.info(
            "Loaded page %d of dataset '%s' (%d rows, total=%d)",
            request.page, request.dataset_id, len(self._store.rows), total_rows,
        )
        return True

    def fetch_page(self, page: int, page_size: int | None = None) -> OperationOutcome:
        try:
            request = self.begin_fetch(page, page_size)
        except ValueError as exc:
            return OperationOutcome(ok=False, error=str(exc))

        try:
            result = self._backend.fetch_rows(request.dataset_id, request.page, request.page_size)
        except Exception as exc:  # noqa: BLE001
            message = coerce_actionable_message(
                _CONTEXT,
                exc,
                location=f"Page {request.page}",
                hint="check the data service connection, then refresh",
            )
            logger.warning("Fetching page %d failed: %s", request.page, message)
            return OperationOutcome(ok=False, error=message)

        if not self.apply_page(request, result):
            return self._invalid(
                f"Page {request.page}",
                "the result arrived after the view changed",
                "refresh to load the current page",
            )
        return OperationOutcome(ok=True, value=self.state)

    def refresh(self) -> OperationOutcome:
        return self.fetch_page(self.state.page)

    def next_page(self) -> OperationOutcome:
        if not self.state.has_next:
            return self._invalid("Next page", "already on the last page", "stay on this page or go back")
        return self.fetch_page(self.state.page + 1)

    def previous_page(self) -> OperationOutcome:
        if not self.state.has_previous:
            return self._invalid("Previous page", "already on the first page", "stay on this page or go forward")
        return self.fetch_page(self.state.page - 1)

    def note_streamed_row(self, row_id: str | None = None) -> bool:
        """Count one new row; a row id already counted since the last page load is ignored."""
        if row_id is not None:
            if row_id in self._counted_rows:
                return False
            self._counted_rows[row_id] = None
            while len(self._counted_rows) > _COUNTED_ROW_MEMORY:
                self._counted_rows.popitem(last=False)
        total_rows = self.state.total_rows + 1
        has_next, _has_previous = _flags(self.state.page, self.state.page_size, total_rows)
        self.state = PageState(
            page=self.state.page,
            page_size=self.state.page_size,
            total_rows=total_rows,
            has_next=has_next,
            has_previous=self.state.has_previous,
        )
        return True

    def note_row_deleted(self) -> None:
        total_rows = max(0, self.state.total_rows - 1)
        has_next, _has_previous = _flags(self.state.page, self.state.page_size, total_rows)
        self.state = PageState(
            page=self.state.page,
            page_size=self.state.page_size,
            total_rows=total_rows,
            has_next=has_next,
            has_previous=self.state.has_previous,
        )

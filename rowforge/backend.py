"""Boundary of the external generation and persistence service.

Implementations may block while waiting on the service; callers run them
from the dispatch thread (see rowforge.dispatch). Notifications about a
running generation are delivered separately through the dispatcher's
progress and status channels.
"""

from __future__ import annotations

from typing import Protocol

from rowforge.dataset_model import Column, Dataset, DatasetRow, RowPage

__all__ = ["BackendError", "DatasetBackend", "DatasetCatalogBackend"]


class BackendError(RuntimeError):
    """Raised by backends when a boundary call fails."""


class DatasetBackend(Protocol):
    def list_columns(self, dataset_id: str) -> list[Column]: ...

    def create_column(
        self,
        dataset_id: str,
        name: str,
        column_type: str,
        type_details: str | None,
        rules: str,
        position: int | None = None,
    ) -> list[Column]:
        """Create one column and return the full position-sorted column list."""
        ...

    def update_column(
        self,
        column_id: int,
        *,
        name: str | None = None,
        column_type: str | None = None,
        type_details: str | None = None,
        rules: str | None = None,
        position: int | None = None,
    ) -> Column: ...

    def delete_column(self, column_id: int) -> None: ...

    def fetch_rows(self, dataset_id: str, page: int, page_size: int) -> RowPage: ...

    def update_row(self, dataset_id: str, row_id: str, cell_edits: dict[int, str]) -> DatasetRow: ...

    def delete_row(self, dataset_id: str, row_id: str) -> None: ...

    def generate_rows(self, dataset_id: str, model_id: int, row_count: int, resource_hint: int) -> str:
        """Start a generation run and return its id."""
        ...

    def cancel_generation(self, run_id: str) -> None: ...


class DatasetCatalogBackend(Protocol):
    def list_datasets(self) -> list[Dataset]: ...

    def create_dataset(self, name: str, description: str = "") -> Dataset: ...

    def rename_dataset(self, dataset_id: str, name: str) -> Dataset: ...

    def delete_dataset(self, dataset_id: str) -> None: ...

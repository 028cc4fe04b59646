from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from rowforge.dataset_model import Column, DatasetRow, PositionUpdate, sort_columns

__all__ = ["RowColumnStore", "StoreSnapshot"]

logger = logging.getLogger("row_store")


@dataclass(frozen=True)
class StoreSnapshot:
    dataset_id: str | None
    columns: tuple[Column, ...]
    rows: tuple[DatasetRow, ...]


class RowColumnStore:
    """
    In-memory columns (position order) and the currently loaded page of rows.

    Only rows on the loaded page are ever touched; streamed rows are kept
    only while the page is below page_capacity.
    """

    def __init__(self, *, page_capacity: int = 100) -> None:
        if int(page_capacity) <= 0:
            raise ValueError(
                f"Row store / page_capacity: value {page_capacity} must be > 0. "
                "Fix: use a positive page capacity."
            )
        self.page_capacity = int(page_capacity)
        self.dataset_id: str | None = None
        self._columns: list[Column] = []
        self._rows: list[DatasetRow] = []

    @property
    def columns(self) -> list[Column]:
        return list(self._columns)

    @property
    def rows(self) -> list[DatasetRow]:
        return list(self._rows)

    @property
    def is_page_full(self) -> bool:
        return len(self._rows) >= self.page_capacity

    def column_by_id(self, column_id: int) -> Column | None:
        for col in self._columns:
            if col.id == column_id:
                return col
        return None

    def column_by_name(self, name: str) -> Column | None:
        for col in self._columns:
            if col.name == name:
                return col
        return None

    def select_dataset(self, dataset_id: str | None) -> None:
        self.dataset_id = dataset_id
        self._columns = []
        self._rows = []

    # ---- columns ----
    def set_columns(self, columns: list[Column]) -> None:
        self._columns = sort_columns(columns)

    def update_column(self, column: Column) -> bool:
        for idx, col in enumerate(self._columns):
            if col.id == column.id:
                self._columns[idx] = column
                self._columns = sort_columns(self._columns)
                return True
        logger.debug("Column %s not in store; update ignored", column.id)
        return False

    def apply_positions(self, updates: list[PositionUpdate]) -> None:
        """Apply all position changes at once, then re-sort."""
        new_positions = {u.column_id: u.position for u in updates}
        updated = [
            replace(col, position=new_positions[col.id]) if col.id in new_positions else col
            for col in self._columns
        ]
        self._columns = sort_columns(updated)

    def remove_column(self, column_id: int) -> bool:
        before = len(self._columns)
        self._columns = [col for col in self._columns if col.id != column_id]
        return len(self._columns) != before

    # ---- rows ----
    def set_rows(self, rows: list[DatasetRow]) -> None:
        self._rows = list(rows[: self.page_capacity])

    def update_row(self, row: DatasetRow) -> bool:
        for idx, existing in enumerate(self._rows):
            if existing.id == row.id:
                self._rows[idx] = row
                return True
        return False

    def remove_row(self, row_id: str) -> bool:
        before = len(self._rows)
        self._rows = [row for row in self._rows if row.id != row_id]
        return len(self._rows) != before

    def remove_rows(self, row_ids: list[str]) -> int:
        doomed = set(row_ids)
        before = len(self._rows)
        self._rows = [row for row in self._rows if row.id not in doomed]
        return before - len(self._rows)

    def ingest_streamed_row(self, row: DatasetRow) -> bool:
        """Append a freshly generated row if the page still has room."""
        if self.is_page_full:
            logger.debug("Page full (%d rows); streamed row %s not buffered", len(self._rows), row.id)
            return False
        if any(existing.id == row.id for existing in self._rows):
            return False
        self._rows.append(row)
        return True

    # ---- snapshot/rollback ----
    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(self.dataset_id, tuple(self._columns), tuple(self._rows))

    def restore(self, snapshot: StoreSnapshot) -> None:
        self.dataset_id = snapshot.dataset_id
        self._columns = list(snapshot.columns)
        self._rows = list(snapshot.rows)

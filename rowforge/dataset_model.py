from __future__ import annotations

import json
from dataclasses import dataclass, field, replace

COLUMN_TYPES: tuple[str, ...] = ("TEXT", "INT", "FLOAT", "BOOL", "JSON")

_TRUE_TEXT = {"true", "1", "yes", "y", "on"}
_FALSE_TEXT = {"false", "0", "no", "n", "off"}


def _cell_error(location: str, issue: str, hint: str) -> str:
    return f"{location}: {issue}. Fix: {hint}."


def normalize_column_name(name: str) -> str:
    return str(name).strip().lower()


def normalize_column_type(column_type: str) -> str:
    return str(column_type).strip().upper()


@dataclass(frozen=True)
class Dataset:
    id: str
    name: str
    description: str = ""
    row_count: int = 0
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class Column:
    id: int | None
    dataset_id: str
    name: str
    column_type: str
    rules: str
    position: int
    # raw JSON text; only meaningful when column_type == "JSON"
    type_details: str = ""


@dataclass(frozen=True)
class PositionUpdate:
    column_id: int
    position: int


@dataclass(frozen=True)
class CellValue:
    """One stored cell. Values stay strings until read with a column type."""

    column_id: int
    raw_value: str = ""

    def parse(self, column_type: str) -> object:
        kind = normalize_column_type(column_type)
        text = self.raw_value.strip()
        location = f"Cell for column {self.column_id}"

        if kind == "TEXT":
            return self.raw_value
        if text == "":
            return None

        if kind == "INT":
            try:
                return int(text)
            except ValueError as exc:
                raise ValueError(
                    _cell_error(location, f"value '{text}' is not an integer", "store a whole number such as 42")
                ) from exc
        if kind == "FLOAT":
            try:
                return float(text)
            except ValueError as exc:
                raise ValueError(
                    _cell_error(location, f"value '{text}' is not a number", "store a decimal number such as 3.5")
                ) from exc
        if kind == "BOOL":
            lowered = text.lower()
            if lowered in _TRUE_TEXT:
                return True
            if lowered in _FALSE_TEXT:
                return False
            raise ValueError(
                _cell_error(location, f"value '{text}' is not a boolean", "store true or false")
            )
        if kind == "JSON":
            try:
                return json.loads(text)
            except json.JSONDecodeError as exc:
                raise ValueError(
                    _cell_error(
                        location,
                        f"invalid JSON at line {exc.lineno}, column {exc.colno}",
                        "store a valid JSON document",
                    )
                ) from exc

        allowed = ", ".join(COLUMN_TYPES)
        raise ValueError(
            _cell_error(location, f"unsupported column type '{column_type}'", f"use one of: {allowed}")
        )


@dataclass(frozen=True)
class DatasetRow:
    id: str
    cells: tuple[CellValue, ...] = ()
    created_at: str = ""
    updated_at: str = ""

    def cell(self, column_id: int) -> CellValue | None:
        for cell in self.cells:
            if cell.column_id == column_id:
                return cell
        return None

    def raw_value(self, column_id: int) -> str:
        cell = self.cell(column_id)
        return "" if cell is None else cell.raw_value

    def value_for(self, column: Column) -> object:
        if column.id is None:
            return None
        cell = self.cell(column.id)
        if cell is None:
            return None
        return cell.parse(column.column_type)

    def with_cells(self, edits: dict[int, str]) -> "DatasetRow":
        """Return a copy with edited cells replaced and new cells appended."""
        remaining = dict(edits)
        cells: list[CellValue] = []
        for cell in self.cells:
            if cell.column_id in remaining:
                cells.append(CellValue(cell.column_id, str(remaining.pop(cell.column_id))))
            else:
                cells.append(cell)
        for column_id, value in remaining.items():
            cells.append(CellValue(int(column_id), str(value)))
        return replace(self, cells=tuple(cells))


@dataclass(frozen=True)
class RowPage:
    rows: list[DatasetRow] = field(default_factory=list)
    total_rows: int = 0
    page: int = 1
    page_size: int = 100
    has_next: bool = False
    has_previous: bool = False

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0 or self.total_rows <= 0:
            return 0
        return (self.total_rows + self.page_size - 1) // self.page_size


def sort_columns(columns: list[Column] | tuple[Column, ...]) -> list[Column]:
    return sorted(columns, key=lambda c: c.position)

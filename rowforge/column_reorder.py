from __future__ import annotations

from rowforge.dataset_model import Column, PositionUpdate, sort_columns


def _reorder_error(issue: str, hint: str) -> str:
    return f"Column reorder: {issue}. Fix: {hint}."


def plan_column_move(columns: list[Column], old_index: int, new_index: int) -> list[PositionUpdate]:
    """
    Position updates for dragging the column at old_index to new_index.

    Every column strictly between the two indexes (plus the one sitting at
    new_index) shifts by one toward the vacated slot; the moved column takes
    new_index. Indexes refer to position order.
    """
    ordered = sort_columns(columns)
    count = len(ordered)
    for label, value in (("old_index", old_index), ("new_index", new_index)):
        if not 0 <= value < count:
            raise ValueError(
                _reorder_error(
                    f"{label} {value} is outside 0..{count - 1}",
                    "drag onto an existing column slot",
                )
            )
    if old_index == new_index:
        return []

    moved = ordered[old_index]
    if moved.id is None:
        raise ValueError(
            _reorder_error(
                f"column '{moved.name}' has no id yet",
                "save the column before reordering it",
            )
        )

    updates: list[PositionUpdate] = []
    if old_index < new_index:
        for i in range(old_index + 1, new_index + 1):
            col = ordered[i]
            if col.id is not None:
                updates.append(PositionUpdate(col.id, i - 1))
    else:
        for i in range(new_index, old_index):
            col = ordered[i]
            if col.id is not None:
                updates.append(PositionUpdate(col.id, i + 1))

    updates.append(PositionUpdate(moved.id, new_index))
    return updates


def plan_position_repack(columns: list[Column]) -> list[PositionUpdate]:
    """Updates that turn the current positions into a dense 0..n-1 sequence."""
    updates: list[PositionUpdate] = []
    for index, col in enumerate(sort_columns(columns)):
        if col.id is not None and col.position != index:
            updates.append(PositionUpdate(col.id, index))
    return updates


def positions_are_dense(columns: list[Column]) -> bool:
    return sorted(c.position for c in columns) == list(range(len(columns)))

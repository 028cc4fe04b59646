import unittest

from rowforge.column_reorder import plan_column_move
from rowforge.column_reorder import plan_position_repack
from rowforge.column_reorder import positions_are_dense
from rowforge.dataset_model import Column
from rowforge.dataset_model import PositionUpdate


def _four_columns() -> list[Column]:
    return [Column(10 + i, "ds-1", f"c{i}", "TEXT", "x", i) for i in range(4)]


def _apply(columns: list[Column], updates: list[PositionUpdate]) -> dict[int, int]:
    positions = {c.id: c.position for c in columns}
    for update in updates:
        positions[update.column_id] = update.position
    return positions


class TestColumnReorder(unittest.TestCase):
    def test_move_from_two_to_zero(self):
        updates = plan_column_move(_four_columns(), 2, 0)
        self.assertEqual(
            set(updates),
            {PositionUpdate(10, 1), PositionUpdate(11, 2), PositionUpdate(12, 0)},
        )

    def test_move_from_zero_to_two(self):
        updates = plan_column_move(_four_columns(), 0, 2)
        self.assertEqual(
            set(updates),
            {PositionUpdate(11, 0), PositionUpdate(12, 1), PositionUpdate(10, 2)},
        )

    def test_moved_column_update_comes_last(self):
        updates = plan_column_move(_four_columns(), 3, 1)
        self.assertEqual(updates[-1], PositionUpdate(13, 1))

    def test_every_move_keeps_positions_dense(self):
        columns = _four_columns()
        for old in range(4):
            for new in range(4):
                positions = _apply(columns, plan_column_move(columns, old, new))
                self.assertEqual(
                    sorted(positions.values()),
                    [0, 1, 2, 3],
                    f"Move {old}->{new} left gaps or duplicates. "
                    "Fix: shift every column between the indexes by exactly one.",
                )
                self.assertEqual(positions[10 + old], new)

    def test_same_index_is_a_no_op(self):
        self.assertEqual(plan_column_move(_four_columns(), 1, 1), [])

    def test_out_of_range_index_raises(self):
        with self.assertRaises(ValueError) as ctx:
            plan_column_move(_four_columns(), 0, 4)
        self.assertIn("new_index 4 is outside 0..3", str(ctx.exception))

    def test_unsaved_column_cannot_move(self):
        columns = _four_columns()
        columns[0] = Column(None, "ds-1", "draft", "TEXT", "x", 0)
        with self.assertRaises(ValueError):
            plan_column_move(columns, 0, 3)

    def test_repack_after_delete(self):
        columns = [
            Column(1, "ds-1", "a", "TEXT", "x", 0),
            Column(3, "ds-1", "c", "TEXT", "x", 2),
            Column(4, "ds-1", "d", "TEXT", "x", 3),
        ]
        self.assertFalse(positions_are_dense(columns))
        updates = plan_position_repack(columns)
        self.assertEqual(updates, [PositionUpdate(3, 1), PositionUpdate(4, 2)])
        self.assertEqual(sorted(_apply(columns, updates).values()), [0, 1, 2])

    def test_dense_positions_need_no_repack(self):
        self.assertEqual(plan_position_repack(_four_columns()), [])
        self.assertTrue(positions_are_dense(_four_columns()))


if __name__ == "__main__":
    unittest.main()

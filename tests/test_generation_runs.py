import unittest

from rowforge.backend import BackendError
from rowforge.dataset_model import DatasetRow
from rowforge.generation_events import ACTIVE_STATUSES
from rowforge.generation_events import RUN_STATUSES
from rowforge.generation_events import GenerationProgress
from rowforge.generation_events import GenerationStatusUpdate
from rowforge.generation_events import normalize_status
from rowforge.generation_runs import GenerationRun
from rowforge.generation_runs import GenerationRunController
from rowforge.generation_runs import progress_snapshot


class _GenerationBackend:
    def __init__(self) -> None:
        self.started: list[tuple[str, int, int, int]] = []
        self.cancelled: list[str] = []
        self.start_error: Exception | None = None
        self.cancel_error: Exception | None = None

    def generate_rows(self, dataset_id: str, model_id: int, row_count: int, resource_hint: int) -> str:
        if self.start_error is not None:
            raise self.start_error
        self.started.append((dataset_id, model_id, row_count, resource_hint))
        return f"run-{len(self.started)}"

    def cancel_generation(self, run_id: str) -> None:
        if self.cancel_error is not None:
            raise self.cancel_error
        self.cancelled.append(run_id)


def _controller() -> tuple[GenerationRunController, _GenerationBackend, list]:
    backend = _GenerationBackend()
    controller = GenerationRunController(backend, time_fn=lambda: 100.0)
    observations: list = []
    controller.subscribe(observations.append)
    return controller, backend, observations


def _start(controller: GenerationRunController, dataset_id: str = "ds-1", rows: int = 10) -> str:
    outcome = controller.request_run(dataset_id, model_id=1, row_count=rows, column_count=2)
    assert outcome.accepted, outcome.error
    return outcome.run_id


def _progress(run_id: str, generated: object, target: object = 10) -> GenerationProgress:
    return GenerationProgress(
        run_id=run_id,
        dataset_id="ds-1",
        row=DatasetRow(f"row-{generated}"),
        generated=generated,
        target=target,
    )


def _kinds(observations: list) -> list[str]:
    return [o.kind for o in observations]


class TestRunRequests(unittest.TestCase):
    def test_guards_reject_without_calling_service(self):
        controller, backend, observations = _controller()
        cases = [
            ("", dict(model_id=1, row_count=5, column_count=1), "no dataset selected"),
            ("ds-1", dict(model_id=0, row_count=5, column_count=1), "no model selected"),
            ("ds-1", dict(model_id=1, row_count=0, column_count=1), "must be > 0"),
            ("ds-1", dict(model_id=1, row_count=5, column_count=0), "no columns"),
            ("ds-1", dict(model_id=1, row_count=5, column_count=1, resource_hint=100), "outside 0..99"),
        ]
        for dataset_id, kwargs, expected in cases:
            outcome = controller.request_run(dataset_id, **kwargs)
            self.assertFalse(outcome.accepted)
            self.assertIn(expected, outcome.error)
        self.assertEqual(backend.started, [])
        self.assertEqual(observations, [])

    def test_one_active_run_per_dataset(self):
        controller, backend, observations = _controller()
        run_id = _start(controller)
        self.assertEqual(controller.get_run(run_id).status, "started")
        self.assertEqual(_kinds(observations), ["requested"])

        second = controller.request_run("ds-1", model_id=1, row_count=3, column_count=1)
        self.assertFalse(second.accepted)
        self.assertIn("already has an active generation run", second.error)

        other = controller.request_run("ds-2", model_id=1, row_count=3, column_count=1, resource_hint=99)
        self.assertTrue(other.accepted)
        self.assertEqual(backend.started[-1], ("ds-2", 1, 3, 99))

    def test_start_failure_leaves_no_run_behind(self):
        controller, backend, observations = _controller()
        backend.start_error = BackendError("model not loaded")

        outcome = controller.request_run("ds-1", model_id=1, row_count=5, column_count=1)
        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.error, "Generation run / Start: model not loaded. Fix: check that the generation service is available, then retry.")
        self.assertFalse(controller.is_busy("ds-1"))
        self.assertEqual(controller.active_runs, [])
        self.assertEqual(observations, [])

        backend.start_error = None
        self.assertTrue(controller.request_run("ds-1", model_id=1, row_count=5, column_count=1).accepted)


class TestRunNotifications(unittest.TestCase):
    def test_first_progress_moves_run_to_running(self):
        controller, _backend, observations = _controller()
        run_id = _start(controller)

        controller.handle_progress(_progress(run_id, 1))
        run = controller.get_run(run_id)
        self.assertEqual(run.status, "running")
        self.assertEqual(run.generated, 1)
        self.assertEqual(run.last_row.id, "row-1")
        self.assertEqual(_kinds(observations), ["requested", "running", "progress"])

    def test_out_of_order_progress_never_regresses(self):
        controller, _backend, observations = _controller()
        run_id = _start(controller)

        controller.handle_progress(_progress(run_id, 3, 12))
        controller.handle_progress(_progress(run_id, 2))
        controller.handle_progress(_progress(run_id, 3))
        run = controller.get_run(run_id)
        self.assertEqual((run.generated, run.target), (3, 12))
        self.assertEqual(run.last_row.id, "row-3")
        self.assertEqual(_kinds(observations).count("progress"), 1)

    def test_garbage_counters_are_ignored(self):
        controller, _backend, _observations = _controller()
        run_id = _start(controller)
        controller.handle_progress(_progress(run_id, "abc", None))
        self.assertEqual(controller.get_run(run_id).generated, 0)

    def test_completed_twice_is_idempotent(self):
        controller, _backend, observations = _controller()
        run_id = _start(controller)
        controller.handle_progress(_progress(run_id, 10))

        first = controller.handle_status(GenerationStatusUpdate(run_id, "completed"))
        second = controller.handle_status(GenerationStatusUpdate(run_id, "completed"))

        self.assertEqual(first.status, "completed")
        self.assertIsNone(second)
        self.assertEqual(_kinds(observations).count("completed"), 1)
        self.assertFalse(controller.is_busy("ds-1"))

    def test_cancel_then_completed_stays_cancelled(self):
        controller, backend, observations = _controller()
        run_id = _start(controller)

        outcome = controller.cancel_run(run_id)
        self.assertTrue(outcome.accepted)
        self.assertEqual(backend.cancelled, [run_id])
        self.assertFalse(controller.is_busy("ds-1"))

        run = controller.handle_status(GenerationStatusUpdate(run_id, "completed"))
        self.assertEqual(run.status, "cancelled")
        self.assertNotIn("completed", _kinds(observations))
        self.assertIsNone(controller.get_run(run_id))
        self.assertIsNone(controller.handle_status(GenerationStatusUpdate(run_id, "cancelled")))

    def test_progress_after_cancel_counts_quietly(self):
        controller, _backend, observations = _controller()
        run_id = _start(controller)
        controller.cancel_run(run_id)

        controller.handle_progress(_progress(run_id, 4))
        run = controller.get_run(run_id)
        self.assertEqual((run.status, run.generated), ("cancelled", 4))
        self.assertEqual(_kinds(observations), ["requested", "cancelled"])

    def test_cancel_service_error_still_retires_run(self):
        controller, backend, _observations = _controller()
        run_id = _start(controller)
        backend.cancel_error = BackendError("already finished")

        outcome = controller.cancel_run(run_id)
        self.assertTrue(outcome.accepted)
        self.assertIn("already finished", outcome.error)
        self.assertIsNone(controller.active_run_for("ds-1"))

    def test_cancel_unknown_run_is_rejected(self):
        controller, _backend, _observations = _controller()
        self.assertFalse(controller.cancel_run("nope").accepted)

    def test_cancel_is_repeatable(self):
        controller, backend, _observations = _controller()
        run_id = _start(controller)
        controller.cancel_run(run_id)
        self.assertTrue(controller.cancel_run(run_id).accepted)
        self.assertEqual(backend.cancelled, [run_id])

    def test_failed_without_message_uses_fallback(self):
        controller, _backend, observations = _controller()
        run_id = _start(controller)
        controller.handle_status(GenerationStatusUpdate(run_id, "failed"))

        self.assertEqual(
            observations[-1].message,
            f"Generation run / {run_id}: generation failed for dataset 'ds-1'. "
            "Fix: check the model and column rules, then generate again.",
        )
        self.assertEqual(observations[-1].kind, "failed")
        self.assertEqual(controller.active_runs, [])

    def test_failed_with_message_keeps_it(self):
        controller, _backend, observations = _controller()
        run_id = _start(controller)
        controller.handle_status(GenerationStatusUpdate(run_id, "error", "out of memory"))
        self.assertEqual((observations[-1].kind, observations[-1].message), ("failed", "out of memory"))

    def test_unknown_runs_and_statuses_are_ignored(self):
        controller, _backend, observations = _controller()
        self.assertIsNone(controller.handle_progress(_progress("ghost", 1)))
        self.assertIsNone(controller.handle_status(GenerationStatusUpdate("ghost", "completed")))

        run_id = _start(controller)
        controller.handle_status(GenerationStatusUpdate(run_id, "paused"))
        controller.handle_status(GenerationStatusUpdate(run_id, "started"))
        self.assertEqual(controller.get_run(run_id).status, "started")

        controller.handle_status(GenerationStatusUpdate(run_id, "generating"))
        self.assertEqual(controller.get_run(run_id).status, "running")
        self.assertEqual(_kinds(observations), ["requested", "running"])

    def test_failing_observer_does_not_break_notifications(self):
        controller, _backend, observations = _controller()

        def broken(_observation):
            raise RuntimeError("observer bug")

        controller.subscribe(broken)
        with self.assertLogs("generation_runs", level="ERROR"):
            run_id = _start(controller)
        self.assertEqual(_kinds(observations), ["requested"])
        self.assertIsNotNone(controller.get_run(run_id))

    def test_cancelled_memory_is_bounded(self):
        backend = _GenerationBackend()
        controller = GenerationRunController(backend, cancelled_run_memory=2)
        run_ids = []
        for i in range(3):
            run_id = _start(controller, dataset_id=f"ds-{i}")
            controller.cancel_run(run_id)
            run_ids.append(run_id)
        self.assertIsNone(controller.get_run(run_ids[0]))
        self.assertIsNotNone(controller.get_run(run_ids[2]))


class TestProgressSnapshot(unittest.TestCase):
    def _run(self, status: str, generated: int) -> GenerationRun:
        return GenerationRun("run-1", "ds-1", 1, target=100, generated=generated, status=status, requested_at=100.0)

    def test_running_snapshot_has_eta(self):
        snap = progress_snapshot(self._run("running", 50), time_fn=lambda: 105.0)
        self.assertEqual(snap.progress_value, 50.0)
        self.assertEqual(snap.rows_text, "Rows generated: 50/100")
        self.assertEqual(snap.eta_text, "ETA: 5s @ 10.00 rows/s")

    def test_terminal_and_started_snapshots(self):
        self.assertEqual(progress_snapshot(self._run("completed", 80)).progress_value, 100.0)
        self.assertEqual(progress_snapshot(self._run("cancelled", 20)).eta_text, "ETA: cancelled")
        self.assertEqual(progress_snapshot(self._run("failed", 20)).eta_text, "ETA: failed")
        self.assertEqual(progress_snapshot(self._run("started", 0)).eta_text, "ETA: calculating...")

    def test_running_without_rows_has_no_rate(self):
        snap = progress_snapshot(self._run("running", 0), time_fn=lambda: 200.0)
        self.assertEqual(snap.eta_text, "ETA: --")


class TestStatusVocabulary(unittest.TestCase):
    def test_aliases(self):
        self.assertEqual(normalize_status("Generating"), "running")
        self.assertEqual(normalize_status("canceled"), "cancelled")
        self.assertEqual(normalize_status(" DONE "), "completed")
        self.assertEqual(normalize_status(None), "")

    def test_only_started_and_running_runs_are_active(self):
        for status in RUN_STATUSES:
            run = GenerationRun("run-1", "ds-1", 1, target=10, status=status)
            self.assertEqual(run.is_active, status in ACTIVE_STATUSES, status)
        self.assertFalse(GenerationRun("run-1", "ds-1", 1, target=10, status="paused").is_active)

    def test_unknown_status_leaves_running_run_untouched(self):
        controller, _backend, observations = _controller()
        run_id = _start(controller)
        controller.handle_progress(_progress(run_id, 1))
        run = controller.handle_status(GenerationStatusUpdate(run_id, "queued"))
        self.assertEqual(run.status, "running")
        self.assertTrue(run.is_active)
        self.assertEqual(_kinds(observations)[-1], "progress")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from rowforge.backend import DatasetBackend
from rowforge.dataset_model import DatasetRow
from rowforge.error_contract import coerce_actionable_message, format_actionable_error
from rowforge.generation_events import (
    ACTIVE_STATUSES,
    RUN_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_RUNNING,
    STATUS_STARTED,
    TERMINAL_STATUSES,
    GenerationProgress,
    GenerationStatusUpdate,
    normalize_status,
)

__all__ = [
    "GenerationRun",
    "GenerationRunController",
    "RunObservation",
    "RunProgressSnapshot",
    "RunRequestOutcome",
    "progress_snapshot",
]

logger = logging.getLogger("generation_runs")

_CONTEXT = "Generation run"


@dataclass
class GenerationRun:
    run_id: str
    dataset_id: str
    model_id: int
    target: int
    generated: int = 0
    last_row: DatasetRow | None = None
    status: str = STATUS_STARTED
    message: str | None = None
    requested_at: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(frozen=True)
class RunObservation:
    # kind: requested | running | progress | completed | cancelled | failed
    kind: str
    run_id: str
    dataset_id: str
    status: str
    generated: int
    target: int
    message: str | None = None
    row: DatasetRow | None = None


@dataclass(frozen=True)
class RunRequestOutcome:
    accepted: bool
    run_id: str | None = None
    error: str = ""


@dataclass(frozen=True)
class RunProgressSnapshot:
    status: str
    progress_value: float
    rows_text: str
    eta_text: str


def _eta_parts(generated: int, target: int, started_at: float, *, time_fn: Callable[[], float]) -> tuple[str, float]:
    elapsed = max(0.001, float(time_fn()) - float(started_at))
    rate = float(generated) / elapsed if generated > 0 else 0.0
    if rate <= 0.0:
        return "ETA: --", 0.0
    remaining = max(0, int(target) - int(generated))
    eta_seconds = int(round(float(remaining) / rate))
    return f"ETA: {eta_seconds}s @ {rate:.2f} rows/s", rate


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def progress_snapshot(run: GenerationRun, *, time_fn: Callable[[], float] = time.monotonic) -> RunProgressSnapshot:
    target = max(1, int(run.target))
    generated = max(0, int(run.generated))
    progress = min(100.0, (float(generated) / float(target)) * 100.0)
    rows_text = f"Rows generated: {generated}/{run.target}"

    if run.status == STATUS_COMPLETED:
        return RunProgressSnapshot(run.status, 100.0, rows_text, "ETA: done")
    if run.status == STATUS_CANCELLED:
        return RunProgressSnapshot(run.status, progress, rows_text, "ETA: cancelled")
    if run.status == STATUS_FAILED:
        return RunProgressSnapshot(run.status, progress, rows_text, "ETA: failed")
    if run.status == STATUS_STARTED:
        return RunProgressSnapshot(run.status, 0.0, rows_text, "ETA: calculating...")

    eta_text, _rate = _eta_parts(generated, run.target, run.requested_at, time_fn=time_fn)
    return RunProgressSnapshot(run.status, progress, rows_text, eta_text)


class GenerationRunController:
    """
    Tracks generation runs from request to terminal status.

    At most one active run per dataset. Notification handlers are total:
    unknown run ids, repeated terminal statuses and regressing counters are
    ignored instead of raising.
    """

    def __init__(
        self,
        backend: DatasetBackend,
        *,
        max_resource_hint: int = 99,
        cancelled_run_memory: int = 64,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._max_resource_hint = int(max_resource_hint)
        self._cancelled_run_memory = max(1, int(cancelled_run_memory))
        self._time_fn = time_fn
        self._active: dict[str, GenerationRun] = {}
        self._pending_datasets: set[str] = set()
        self._cancelled: OrderedDict[str, GenerationRun] = OrderedDict()
        self._observers: list[Callable[[RunObservation], None]] = []

    # ---- observers ----
    def subscribe(self, observer: Callable[[RunObservation], None]) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self, kind: str, run: GenerationRun, *, row: DatasetRow | None = None) -> None:
        observation = RunObservation(
            kind=kind,
            run_id=run.run_id,
            dataset_id=run.dataset_id,
            status=run.status,
            generated=run.generated,
            target=run.target,
            message=run.message,
            row=row,
        )
        for observer in list(self._observers):
            try:
                observer(observation)
            except Exception:  # noqa: BLE001
                logger.exception("Run observer failed for %s '%s'", kind, run.run_id)

    # ---- queries ----
    @property
    def active_runs(self) -> list[GenerationRun]:
        return list(self._active.values())

    def get_run(self, run_id: str) -> GenerationRun | None:
        return self._active.get(run_id) or self._cancelled.get(run_id)

    def active_run_for(self, dataset_id: str) -> GenerationRun | None:
        for run in self._active.values():
            if run.dataset_id == dataset_id:
                return run
        return None

    def is_busy(self, dataset_id: str) -> bool:
        return dataset_id in self._pending_datasets or self.active_run_for(dataset_id) is not None

    # ---- requests ----
    def _reject(self, location: str, issue: str, hint: str) -> RunRequestOutcome:
        message = format_actionable_error(_CONTEXT, location, issue, hint)
        logger.info("Run request rejected: %s", message)
        return RunRequestOutcome(accepted=False, error=message)

    def request_run(
        self,
        dataset_id: str,
        *,
        model_id: int,
        row_count: int,
        column_count: int,
        resource_hint: int = 0,
    ) -> RunRequestOutcome:
        if not dataset_id:
            return self._reject("Dataset", "no dataset selected", "select a dataset before generating")
        if self.is_busy(dataset_id):
            return self._reject(
                "Dataset",
                f"dataset '{dataset_id}' already has an active generation run",
                "wait for the current run to finish or cancel it",
            )
        if int(model_id) <= 0:
            return self._reject("Model", "no model selected", "select a downloaded model")
        if int(row_count) <= 0:
            return self._reject("Row count", f"value {row_count} must be > 0", "request at least one row")
        if int(column_count) <= 0:
            return self._reject("Columns", "the dataset has no columns", "define at least one column before generating")
        if not 0 <= int(resource_hint) <= self._max_resource_hint:
            return self._reject(
                "Resource hint",
                f"value {resource_hint} is outside 0..{self._max_resource_hint}",
                f"choose a value between 0 and {self._max_resource_hint}",
            )

        self._pending_datasets.add(dataset_id)
        try:
            run_id = self._backend.generate_rows(dataset_id, int(model_id), int(row_count), int(resource_hint))
        except Exception as exc:  # noqa: BLE001
            message = coerce_actionable_message(
                _CONTEXT,
                exc,
                location="Start",
                hint="check that the generation service is available, then retry",
            )
            logger.warning("Run request for dataset '%s' failed: %s", dataset_id, message)
            return RunRequestOutcome(accepted=False, error=message)
        finally:
            self._pending_datasets.discard(dataset_id)

        run = GenerationRun(
            run_id=str(run_id),
            dataset_id=dataset_id,
            model_id=int(model_id),
            target=int(row_count),
            requested_at=float(self._time_fn()),
        )
        self._active[run.run_id] = run
        logger.info(
            "Generation run '%s' requested for dataset '%s' (rows=%d, model=%d)",
            run.run_id, dataset_id, run.target, run.model_id,
        )
        self._notify("requested", run)
        return RunRequestOutcome(accepted=True, run_id=run.run_id)

    def cancel_run(self, run_id: str) -> RunRequestOutcome:
        run = self._active.get(run_id)
        if run is None:
            if run_id in self._cancelled:
                return RunRequestOutcome(accepted=True, run_id=run_id)
            return self._reject("Cancel", f"run '{run_id}' is not active", "refresh the run list")

        run.status = STATUS_CANCELLED
        self._retire(run)
        self._remember_cancelled(run)
        logger.info("Generation run '%s' cancelled (rows=%d/%d)", run.run_id, run.generated, run.target)
        self._notify("cancelled", run)

        try:
            self._backend.cancel_generation(run_id)
        except Exception as exc:  # noqa: BLE001
            message = coerce_actionable_message(
                _CONTEXT,
                exc,
                location="Cancel",
                hint="the run may already have finished; refresh the page to see its rows",
            )
            logger.warning("Cancel request for run '%s' failed: %s", run_id, message)
            return RunRequestOutcome(accepted=True, run_id=run_id, error=message)
        return RunRequestOutcome(accepted=True, run_id=run_id)

    def _retire(self, run: GenerationRun) -> None:
        self._active.pop(run.run_id, None)

    def _remember_cancelled(self, run: GenerationRun) -> None:
        self._cancelled[run.run_id] = run
        self._cancelled.move_to_end(run.run_id)
        while len(self._cancelled) > self._cancelled_run_memory:
            self._cancelled.popitem(last=False)

    # ---- notifications ----
    def handle_progress(self, event: GenerationProgress) -> GenerationRun | None:
        run = self._active.get(event.run_id) or self._cancelled.get(event.run_id)
        if run is None:
            logger.debug("Progress for untracked run '%s' ignored", event.run_id)
            return None

        if run.status == STATUS_STARTED:
            run.status = STATUS_RUNNING
            self._notify("running", run)

        generated = _as_int(event.generated, -1)
        if generated <= run.generated:
            logger.debug(
                "Progress for run '%s' ignored (counter %d <= %d)",
                run.run_id, generated, run.generated,
            )
            return run

        run.generated = generated
        target = _as_int(event.target, 0)
        if target > 0:
            run.target = target
        if event.row is not None:
            run.last_row = event.row

        # cancelled runs keep counting but stay quiet
        if run.status != STATUS_CANCELLED:
            self._notify("progress", run, row=event.row)
        return run

    def handle_status(self, event: GenerationStatusUpdate) -> GenerationRun | None:
        status = normalize_status(event.status)

        cancelled = self._cancelled.get(event.run_id)
        if cancelled is not None:
            if status in TERMINAL_STATUSES:
                self._cancelled.pop(event.run_id, None)
                logger.debug(
                    "Terminal status '%s' for cancelled run '%s' reconciled",
                    status, event.run_id,
                )
            return cancelled

        run = self._active.get(event.run_id)
        if run is None:
            logger.debug("Status '%s' for untracked run '%s' ignored", status, event.run_id)
            return None

        if status not in RUN_STATUSES:
            logger.debug("Unknown status '%s' for run '%s' ignored", event.status, run.run_id)
            return run
        if status == STATUS_STARTED:
            return run
        if status == STATUS_RUNNING:
            if run.status == STATUS_STARTED:
                run.status = STATUS_RUNNING
                self._notify("running", run)
            return run

        run.status = status
        self._retire(run)

        if status == STATUS_COMPLETED:
            run.message = event.message
            logger.info("Generation run '%s' completed (rows=%d/%d)", run.run_id, run.generated, run.target)
        elif status == STATUS_CANCELLED:
            run.message = event.message
            logger.info("Generation run '%s' cancelled by the service", run.run_id)
        else:
            run.message = (event.message or "").strip() or format_actionable_error(
                _CONTEXT,
                run.run_id,
                f"generation failed for dataset '{run.dataset_id}'",
                "check the model and column rules, then generate again",
            )
            logger.info("Generation run '%s' failed: %s", run.run_id, run.message)

        self._notify(status, run)
        return run

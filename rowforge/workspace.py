"""Dataset workspace: the one object a front end talks to.

All methods, and every notification handler, run on the dispatcher's
owner thread. The backend may block; notifications from the generation
service are published onto dispatcher.progress / dispatcher.status from
any thread and applied here when the dispatcher is pumped.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from rowforge.backend import DatasetBackend
from rowforge.column_dependencies import column_evaluation_order
from rowforge.column_reorder import plan_column_move, plan_position_repack
from rowforge.column_validation import (
    ColumnDraft,
    ColumnValidationResult,
    ValidationIssue,
    validate_column_draft,
)
from rowforge.config import AppConfig, validate_config
from rowforge.dataset_model import Column, PositionUpdate, normalize_column_name, normalize_column_type
from rowforge.dispatch import NotificationDispatcher
from rowforge.error_contract import OperationOutcome, coerce_actionable_message, format_actionable_error
from rowforge.generation_events import GenerationProgress, GenerationStatusUpdate
from rowforge.generation_runs import GenerationRunController, RunObservation
from rowforge.pagination import PaginationCoordinator
from rowforge.row_store import RowColumnStore

__all__ = ["DatasetWorkspace"]

logger = logging.getLogger("workspace")


class DatasetWorkspace:
    def __init__(
        self,
        backend: DatasetBackend,
        dispatcher: NotificationDispatcher,
        config: AppConfig | None = None,
        *,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or AppConfig()
        validate_config(self.config)
        self._backend = backend
        self.dispatcher = dispatcher
        self.store = RowColumnStore(page_capacity=self.config.page_capacity)
        self.pagination = PaginationCoordinator(
            backend,
            self.store,
            page_size=self.config.default_page_size,
            page_capacity=self.config.page_capacity,
        )
        self.runs = GenerationRunController(
            backend,
            max_resource_hint=self.config.max_resource_hint,
            cancelled_run_memory=self.config.cancelled_run_memory,
            time_fn=time_fn,
        )
        self.last_error = ""
        self._unsubscribers = [
            dispatcher.progress.subscribe(self._on_progress),
            dispatcher.status.subscribe(self._on_status),
        ]

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    @property
    def dataset_id(self) -> str | None:
        return self.store.dataset_id

    @property
    def columns(self) -> list[Column]:
        return self.store.columns

    def subscribe_runs(self, observer: Callable[[RunObservation], None]) -> Callable[[], None]:
        return self.runs.subscribe(observer)

    # ---- outcome helpers ----
    def _ok(self, value: object = None) -> OperationOutcome:
        self.last_error = ""
        return OperationOutcome(ok=True, value=value)

    def _fail(self, message: str, issues: tuple[ValidationIssue, ...] = ()) -> OperationOutcome:
        self.last_error = message
        return OperationOutcome(ok=False, error=message, issues=issues)

    def _boundary_failure(self, context: str, exc: Exception, *, location: str, hint: str) -> OperationOutcome:
        message = coerce_actionable_message(context, exc, location=location, hint=hint)
        logger.warning("%s / %s failed: %s", context, location, message)
        return self._fail(message)

    def _require_dataset(self, context: str) -> OperationOutcome | None:
        if self.store.dataset_id:
            return None
        return self._fail(format_actionable_error(context, "Dataset", "no dataset selected", "select a dataset first"))

    def _rejected(self, result: ColumnValidationResult) -> OperationOutcome:
        errors = result.errors
        return self._fail(errors[0].message, tuple(result.issues))

    # ---- selection ----
    def select_dataset(self, dataset_id: str | None) -> OperationOutcome:
        self.store.select_dataset(dataset_id)
        self.pagination.reset()
        if not dataset_id:
            return self._ok()
        loaded = self.load_columns()
        if not loaded.ok:
            return loaded
        return self.pagination.fetch_page(1)

    def load_columns(self) -> OperationOutcome:
        missing = self._require_dataset("Columns")
        if missing is not None:
            return missing
        dataset_id = self.store.dataset_id
        try:
            columns = self._backend.list_columns(dataset_id)
        except Exception as exc:  # noqa: BLE001
            return self._boundary_failure("Columns", exc, location="Load", hint="check the data service connection, then retry")
        if dataset_id != self.store.dataset_id:
            return self._fail(
                format_actionable_error("Columns", "Load", "the dataset changed while loading", "reload the columns")
            )
        self.store.set_columns(columns)
        return self._ok(self.store.columns)

    # ---- columns ----
    def validate_column(self, draft: ColumnDraft) -> ColumnValidationResult:
        return validate_column_draft(draft, self.store.columns)

    def create_column(self, name: str, column_type: str, rules: str, type_details: str = "") -> OperationOutcome:
        missing = self._require_dataset("Create column")
        if missing is not None:
            return missing
        draft = ColumnDraft(name=name, column_type=column_type, rules=rules, type_details=type_details)
        result = self.validate_column(draft)
        if not result.accepted:
            return self._rejected(result)

        clean_name = normalize_column_name(name)
        clean_type = normalize_column_type(column_type)
        details = type_details.strip() if clean_type == "JSON" else None
        try:
            columns = self._backend.create_column(
                self.store.dataset_id,
                clean_name,
                clean_type,
                details,
                rules,
                len(self.store.columns),
            )
        except Exception as exc:  # noqa: BLE001
            return self._boundary_failure("Create column", exc, location=f"Column '{clean_name}'", hint="retry, or reload the columns")

        self.store.set_columns(columns)
        created = self.store.column_by_name(clean_name)
        logger.info("Created column '%s' (%s) in dataset '%s'", clean_name, clean_type, self.store.dataset_id)
        return self._ok(created)

    def update_column(
        self,
        column_id: int,
        *,
        name: str | None = None,
        column_type: str | None = None,
        rules: str | None = None,
        type_details: str | None = None,
    ) -> OperationOutcome:
        existing = self.store.column_by_id(column_id)
        if existing is None:
            return self._fail(
                format_actionable_error(
                    "Update column", f"Column {column_id}", "column is not loaded", "reload the columns"
                )
            )
        draft = ColumnDraft(
            name=existing.name if name is None else name,
            column_type=existing.column_type if column_type is None else column_type,
            rules=existing.rules if rules is None else rules,
            type_details=existing.type_details if type_details is None else type_details,
            column_id=column_id,
            current_name=existing.name,
        )
        result = self.validate_column(draft)
        if not result.accepted:
            return self._rejected(result)

        clean_type = normalize_column_type(draft.column_type)
        try:
            updated = self._backend.update_column(
                column_id,
                name=normalize_column_name(draft.name),
                column_type=clean_type,
                type_details=draft.type_details.strip() if clean_type == "JSON" else "",
                rules=draft.rules,
                position=existing.position,
            )
        except Exception as exc:  # noqa: BLE001
            return self._boundary_failure(
                "Update column", exc, location=f"Column '{existing.name}'", hint="retry, or reload the columns"
            )

        self.store.update_column(updated)
        logger.info("Updated column %s ('%s')", column_id, updated.name)
        return self._ok(updated)

    def delete_column(self, column_id: int) -> OperationOutcome:
        existing = self.store.column_by_id(column_id)
        if existing is None:
            return self._fail(
                format_actionable_error(
                    "Delete column", f"Column {column_id}", "column is not loaded", "reload the columns"
                )
            )
        try:
            self._backend.delete_column(column_id)
        except Exception as exc:  # noqa: BLE001
            return self._boundary_failure(
                "Delete column", exc, location=f"Column '{existing.name}'", hint="retry, or reload the columns"
            )
        self.store.remove_column(column_id)
        logger.info("Deleted column %s ('%s')", column_id, existing.name)

        error = self._apply_positions(plan_position_repack(self.store.columns))
        if error:
            return self._fail(error)
        return self._ok(column_id)

    def move_column(self, old_index: int, new_index: int) -> OperationOutcome:
        try:
            updates = plan_column_move(self.store.columns, old_index, new_index)
        except ValueError as exc:
            return self._fail(str(exc))
        error = self._apply_positions(updates)
        if error:
            return self._fail(error)
        return self._ok(self.store.columns)

    def _apply_positions(self, updates: list[PositionUpdate]) -> str | None:
        """Apply a bulk reposition locally, persist it, and restore the snapshot on any failure."""
        if not updates:
            return None
        snapshot = self.store.snapshot()
        self.store.apply_positions(updates)
        for update in updates:
            try:
                self._backend.update_column(update.column_id, position=update.position)
            except Exception as exc:  # noqa: BLE001
                self.store.restore(snapshot)
                message = coerce_actionable_message(
                    "Reorder columns",
                    exc,
                    location=f"Column {update.column_id}",
                    hint="the previous order was restored; retry the move",
                )
                logger.warning("Column reposition rolled back: %s", message)
                return message
        logger.info("Repositioned %d column(s) in dataset '%s'", len(updates), self.store.dataset_id)
        return None

    # ---- rows ----
    def update_row(self, row_id: str, edits: dict[int, str]) -> OperationOutcome:
        missing = self._require_dataset("Update row")
        if missing is not None:
            return missing
        known = {c.id for c in self.store.columns}
        unknown = sorted(str(cid) for cid in edits if cid not in known)
        if unknown:
            return self._fail(
                format_actionable_error(
                    "Update row",
                    f"Row '{row_id}'",
                    f"edits name unknown column ids ({', '.join(unknown)})",
                    "edit only cells of existing columns",
                )
            )
        try:
            row = self._backend.update_row(self.store.dataset_id, row_id, {int(k): str(v) for k, v in edits.items()})
        except Exception as exc:  # noqa: BLE001
            return self._boundary_failure("Update row", exc, location=f"Row '{row_id}'", hint="retry, or refresh the page")
        self.store.update_row(row)
        return self._ok(row)

    def delete_row(self, row_id: str) -> OperationOutcome:
        missing = self._require_dataset("Delete row")
        if missing is not None:
            return missing
        try:
            self._backend.delete_row(self.store.dataset_id, row_id)
        except Exception as exc:  # noqa: BLE001
            return self._boundary_failure("Delete row", exc, location=f"Row '{row_id}'", hint="retry, or refresh the page")
        self.store.remove_row(row_id)
        self.pagination.note_row_deleted()
        return self._ok(row_id)

    def delete_rows(self, row_ids: list[str]) -> OperationOutcome:
        """
        Delete several rows one backend call at a time.

        Rows the service deleted leave the page and the counters even when
        other deletes fail; the failures come back as one message and the
        outcome value lists the ids that were deleted.
        """
        missing = self._require_dataset("Delete rows")
        if missing is not None:
            return missing
        wanted = list(dict.fromkeys(row_ids))
        if not wanted:
            return self._fail(
                format_actionable_error("Delete rows", "Selection", "no rows selected", "select at least one row")
            )

        deleted: list[str] = []
        failed: list[str] = []
        first_reason = ""
        for row_id in wanted:
            try:
                self._backend.delete_row(self.store.dataset_id, row_id)
            except Exception as exc:  # noqa: BLE001
                failed.append(row_id)
                if not first_reason:
                    first_reason = str(exc).strip().rstrip(".") or exc.__class__.__name__
                logger.warning("Delete rows: row '%s' failed: %s", row_id, exc)
                continue
            deleted.append(row_id)

        self.store.remove_rows(deleted)
        for _row_id in deleted:
            self.pagination.note_row_deleted()
        logger.info("Deleted %d of %d row(s) in dataset '%s'", len(deleted), len(wanted), self.store.dataset_id)

        if failed:
            message = format_actionable_error(
                "Delete rows",
                f"{len(failed)} of {len(wanted)} rows",
                f"could not delete {', '.join(failed)} ({first_reason})",
                "refresh the page, then retry the remaining rows",
            )
            self.last_error = message
            return OperationOutcome(ok=False, value=deleted, error=message)
        return self._ok(deleted)

    # ---- generation ----
    def generate_rows(self, model_id: int, row_count: int, resource_hint: int | None = None) -> OperationOutcome:
        missing = self._require_dataset("Generation run")
        if missing is not None:
            return missing
        try:
            column_evaluation_order(self.store.columns)
        except ValueError as exc:
            issue = ValidationIssue(
                severity="error",
                field="rules",
                code="circular_dependency",
                location="Column dependency ordering",
                message=str(exc),
            )
            return self._fail(str(exc), (issue,))

        hint = self.config.default_resource_hint if resource_hint is None else resource_hint
        outcome = self.runs.request_run(
            self.store.dataset_id,
            model_id=model_id,
            row_count=row_count,
            column_count=len(self.store.columns),
            resource_hint=hint,
        )
        if not outcome.accepted:
            return self._fail(outcome.error)
        return self._ok(outcome.run_id)

    def cancel_generation(self, run_id: str | None = None) -> OperationOutcome:
        if run_id is None:
            run = self.runs.active_run_for(self.store.dataset_id or "")
            if run is None:
                return self._fail(
                    format_actionable_error(
                        "Generation run", "Cancel", "no active run for this dataset", "start a run before cancelling"
                    )
                )
            run_id = run.run_id
        outcome = self.runs.cancel_run(run_id)
        if not outcome.accepted:
            return self._fail(outcome.error)
        if outcome.error:
            # the run is retired locally even when the service call failed
            self.last_error = outcome.error
            return OperationOutcome(ok=True, value=run_id, error=outcome.error)
        return self._ok(run_id)

    # ---- notifications ----
    def _on_progress(self, event: object) -> None:
        if not isinstance(event, GenerationProgress):
            return
        before = self.runs.get_run(event.run_id)
        previous_count = before.generated if before is not None else None
        run = self.runs.handle_progress(event)
        if run is not None and previous_count is not None and run.generated <= previous_count:
            return

        if event.row is None or event.dataset_id != self.store.dataset_id:
            return
        if any(row.id == event.row.id for row in self.store.rows):
            return
        self.store.ingest_streamed_row(event.row)
        self.pagination.note_streamed_row(event.row.id)

    def _on_status(self, event: object) -> None:
        if not isinstance(event, GenerationStatusUpdate):
            return
        self.runs.handle_status(event)

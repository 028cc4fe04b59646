from __future__ import annotations

import logging

from rowforge.backend import DatasetCatalogBackend
from rowforge.dataset_model import Dataset
from rowforge.error_contract import OperationOutcome, coerce_actionable_message, format_actionable_error

__all__ = ["DatasetCatalog"]

logger = logging.getLogger("dataset_catalog")

_CONTEXT = "Datasets"


class DatasetCatalog:
    """Local mirror of the dataset list plus the current selection."""

    def __init__(self, backend: DatasetCatalogBackend) -> None:
        self._backend = backend
        self._datasets: list[Dataset] = []
        self.selected_id: str | None = None

    @property
    def datasets(self) -> list[Dataset]:
        return list(self._datasets)

    @property
    def selected(self) -> Dataset | None:
        return self.get(self.selected_id) if self.selected_id else None

    def get(self, dataset_id: str | None) -> Dataset | None:
        for dataset in self._datasets:
            if dataset.id == dataset_id:
                return dataset
        return None

    def select(self, dataset_id: str | None) -> bool:
        if dataset_id is not None and self.get(dataset_id) is None:
            return False
        self.selected_id = dataset_id
        return True

    def _boundary_error(self, exc: Exception, location: str, hint: str) -> OperationOutcome:
        message = coerce_actionable_message(_CONTEXT, exc, location=location, hint=hint)
        logger.warning("%s failed: %s", location, message)
        return OperationOutcome(ok=False, error=message)

    def _check_name(self, name: str, *, exclude_id: str | None = None) -> str | None:
        clean = str(name).strip()
        if clean == "":
            return format_actionable_error(_CONTEXT, "Name", "dataset name is required", "enter a dataset name")
        for dataset in self._datasets:
            if dataset.id != exclude_id and dataset.name == clean:
                return format_actionable_error(
                    _CONTEXT,
                    "Name",
                    f"a dataset named '{clean}' already exists",
                    "choose a different name",
                )
        return None

    def refresh(self) -> OperationOutcome:
        try:
            datasets = list(self._backend.list_datasets())
        except Exception as exc:  # noqa: BLE001
            return self._boundary_error(exc, "Load", "check the data service connection, then retry")
        self._datasets = datasets
        if self.selected_id is not None and self.get(self.selected_id) is None:
            logger.info("Selected dataset '%s' no longer exists; selection cleared", self.selected_id)
            self.selected_id = None
        return OperationOutcome(ok=True, value=self.datasets)

    def create(self, name: str, description: str = "") -> OperationOutcome:
        error = self._check_name(name)
        if error is not None:
            return OperationOutcome(ok=False, error=error)
        try:
            dataset = self._backend.create_dataset(str(name).strip(), str(description).strip())
        except Exception as exc:  # noqa: BLE001
            return self._boundary_error(exc, "Create", "retry, or refresh the dataset list")
        self._datasets.append(dataset)
        logger.info("Created dataset '%s' (%s)", dataset.name, dataset.id)
        return OperationOutcome(ok=True, value=dataset)

    def rename(self, dataset_id: str, name: str) -> OperationOutcome:
        if self.get(dataset_id) is None:
            return OperationOutcome(
                ok=False,
                error=format_actionable_error(
                    _CONTEXT, "Rename", f"dataset '{dataset_id}' is not loaded", "refresh the dataset list"
                ),
            )
        error = self._check_name(name, exclude_id=dataset_id)
        if error is not None:
            return OperationOutcome(ok=False, error=error)
        try:
            renamed = self._backend.rename_dataset(dataset_id, str(name).strip())
        except Exception as exc:  # noqa: BLE001
            return self._boundary_error(exc, "Rename", "retry, or refresh the dataset list")
        self._datasets = [renamed if d.id == dataset_id else d for d in self._datasets]
        logger.info("Renamed dataset '%s' to '%s'", dataset_id, renamed.name)
        return OperationOutcome(ok=True, value=renamed)

    def delete(self, dataset_id: str) -> OperationOutcome:
        if self.get(dataset_id) is None:
            return OperationOutcome(
                ok=False,
                error=format_actionable_error(
                    _CONTEXT, "Delete", f"dataset '{dataset_id}' is not loaded", "refresh the dataset list"
                ),
            )
        try:
            self._backend.delete_dataset(dataset_id)
        except Exception as exc:  # noqa: BLE001
            return self._boundary_error(exc, "Delete", "retry, or refresh the dataset list")
        self._datasets = [d for d in self._datasets if d.id != dataset_id]
        if self.selected_id == dataset_id:
            self.selected_id = None
        logger.info("Deleted dataset '%s'", dataset_id)
        return OperationOutcome(ok=True, value=dataset_id)

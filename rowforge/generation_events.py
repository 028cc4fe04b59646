from __future__ import annotations

from dataclasses import dataclass

from rowforge.dataset_model import DatasetRow

__all__ = [
    "ACTIVE_STATUSES",
    "RUN_STATUSES",
    "STATUS_CANCELLED",
    "STATUS_COMPLETED",
    "STATUS_FAILED",
    "STATUS_RUNNING",
    "STATUS_STARTED",
    "TERMINAL_STATUSES",
    "GenerationProgress",
    "GenerationStatusUpdate",
    "normalize_status",
]

STATUS_STARTED = "started"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_FAILED = "failed"

RUN_STATUSES: tuple[str, ...] = (
    STATUS_STARTED,
    STATUS_RUNNING,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_FAILED,
)
ACTIVE_STATUSES = frozenset({STATUS_STARTED, STATUS_RUNNING})
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED, STATUS_FAILED})

# Status spellings some generation services emit.
_STATUS_ALIASES = {
    "generating": STATUS_RUNNING,
    "in_progress": STATUS_RUNNING,
    "canceled": STATUS_CANCELLED,
    "complete": STATUS_COMPLETED,
    "done": STATUS_COMPLETED,
    "error": STATUS_FAILED,
}


def normalize_status(value: object) -> str:
    """Lower-case and map known aliases; unknown values come back as-is."""
    text = str(value or "").strip().lower()
    return _STATUS_ALIASES.get(text, text)


@dataclass(frozen=True)
class GenerationProgress:
    run_id: str
    dataset_id: str
    row: DatasetRow | None
    generated: int
    target: int
    status: str = STATUS_RUNNING


@dataclass(frozen=True)
class GenerationStatusUpdate:
    run_id: str
    status: str
    message: str | None = None

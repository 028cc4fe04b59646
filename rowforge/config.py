from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    debug: bool = True
    log_level: str = "DEBUG"  # change to "INFO" later
    page_capacity: int = 100  # rows kept resident in the current page
    default_page_size: int = 100
    default_resource_hint: int = 0
    max_resource_hint: int = 99
    cancelled_run_memory: int = 64


def validate_config(cfg: AppConfig) -> None:
    if cfg.page_capacity <= 0:
        raise ValueError(
            f"App config / page_capacity: value {cfg.page_capacity} must be > 0. "
            "Fix: set page_capacity to a positive whole number."
        )
    if cfg.default_page_size <= 0:
        raise ValueError(
            f"App config / default_page_size: value {cfg.default_page_size} must be > 0. "
            "Fix: set default_page_size to a positive whole number."
        )
    if cfg.default_page_size > cfg.page_capacity:
        raise ValueError(
            f"App config / default_page_size: value {cfg.default_page_size} exceeds page_capacity {cfg.page_capacity}. "
            "Fix: use a page size <= page_capacity."
        )
    if cfg.max_resource_hint < 0:
        raise ValueError(
            f"App config / max_resource_hint: value {cfg.max_resource_hint} must be >= 0. "
            "Fix: set max_resource_hint to 0 or greater."
        )
    if not 0 <= cfg.default_resource_hint <= cfg.max_resource_hint:
        raise ValueError(
            f"App config / default_resource_hint: value {cfg.default_resource_hint} is outside 0..{cfg.max_resource_hint}. "
            "Fix: choose a default within the allowed range."
        )
    if cfg.cancelled_run_memory < 1:
        raise ValueError(
            f"App config / cancelled_run_memory: value {cfg.cancelled_run_memory} must be >= 1. "
            "Fix: keep at least one cancelled run in memory."
        )

"""Parsing and validation for JSON column type-detail schemas."""

from __future__ import annotations

import json

__all__ = [
    "SCHEMA_TYPE_NAMES",
    "flatten_schema_paths",
    "parse_type_schema",
    "validate_type_schema",
]

SCHEMA_TYPE_NAMES: tuple[str, ...] = ("string", "number", "boolean", "object", "array", "null")

_LOCATION = "Type details"


def _schema_error(issue: str, hint: str) -> str:
    return f"{_LOCATION}: {issue}. Fix: {hint}."


def validate_type_schema(schema: object, path: str = "") -> str | None:
    """Return an actionable error for the first invalid node, or None."""

    where = path or "root"
    if not isinstance(schema, dict):
        return _schema_error(
            f"value at {where} must be an object",
            "use an object mapping field names to type names",
        )

    for key, value in schema.items():
        current = f"{path}.{key}" if path else str(key)
        if isinstance(value, dict):
            nested_error = validate_type_schema(value, current)
            if nested_error is not None:
                return nested_error
        elif isinstance(value, str):
            if value.strip().lower() not in SCHEMA_TYPE_NAMES:
                allowed = ", ".join(SCHEMA_TYPE_NAMES)
                return _schema_error(
                    f"invalid type \"{value}\" at {current}",
                    f"use one of: {allowed}",
                )
        else:
            return _schema_error(
                f"value at {current} must be a type string or nested object",
                "replace it with a type name such as \"string\" or a nested object",
            )
    return None


def parse_type_schema(text: str) -> tuple[dict[str, object] | None, str | None]:
    """Parse type-detail text and return (schema, error_message)."""

    candidate = str(text or "").strip()
    if candidate == "":
        return (
            None,
            _schema_error(
                "a JSON structure is required for JSON columns",
                "describe the fields, for example {\"name\": \"string\"}",
            ),
        )

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return (
            None,
            _schema_error(
                f"invalid JSON at line {exc.lineno}, column {exc.colno}",
                "correct JSON syntax (quotes, commas, and brackets)",
            ),
        )

    error = validate_type_schema(value)
    if error is not None:
        return None, error
    assert isinstance(value, dict)
    if not value:
        return (
            None,
            _schema_error(
                "the JSON structure is empty",
                "declare at least one field, for example {\"name\": \"string\"}",
            ),
        )
    return value, None


def flatten_schema_paths(schema: dict[str, object], prefix: str = "") -> dict[str, str]:
    """Map dotted field paths to lower-cased type names; empty nested objects map to "object"."""

    out: dict[str, str] = {}
    for key, value in schema.items():
        current = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            if value:
                out.update(flatten_schema_paths(value, current))
            else:
                out[current] = "object"
        else:
            out[current] = str(value).strip().lower()
    return out

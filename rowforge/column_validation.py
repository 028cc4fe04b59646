"""Local acceptance checks for a column definition before it is persisted.

References are checked against the flat set of column names only. Cycles
that span several columns are caught later by column_dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass

from rowforge.dataset_model import COLUMN_TYPES, Column, normalize_column_name, normalize_column_type
from rowforge.error_contract import format_actionable_error
from rowforge.rule_tokens import (
    RANDOM_RANGE,
    RANDOM_SINGLE,
    HighlightSegment,
    RuleToken,
    highlight_segments,
    random_tokens,
    reference_tokens,
)
from rowforge.type_schema import parse_type_schema

__all__ = [
    "ColumnDraft",
    "ColumnValidationResult",
    "ReferenceCheck",
    "ValidationIssue",
    "validate_column_draft",
]

SEVERITY_ERROR = "error"
SEVERITY_WARN = "warn"


@dataclass(frozen=True)
class ColumnDraft:
    """A column being created (column_id None) or edited."""

    name: str
    column_type: str
    rules: str
    type_details: str = ""
    column_id: int | None = None
    current_name: str | None = None


@dataclass(frozen=True)
class ValidationIssue:
    severity: str
    field: str
    code: str
    location: str
    message: str


@dataclass(frozen=True)
class ReferenceCheck:
    name: str
    start: int
    end: int
    is_circular: bool
    is_valid: bool

    @property
    def state(self) -> str:
        if self.is_circular:
            return "circular"
        return "valid" if self.is_valid else "invalid"


@dataclass(frozen=True)
class ColumnValidationResult:
    draft: ColumnDraft
    tokens: tuple[RuleToken, ...] = ()
    references: tuple[ReferenceCheck, ...] = ()
    issues: tuple[ValidationIssue, ...] = ()
    type_schema: dict[str, object] | None = None

    @property
    def accepted(self) -> bool:
        return not any(issue.severity == SEVERITY_ERROR for issue in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == SEVERITY_ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == SEVERITY_WARN]

    @property
    def circular_references(self) -> list[ReferenceCheck]:
        return [ref for ref in self.references if ref.is_circular]

    @property
    def invalid_references(self) -> list[ReferenceCheck]:
        return [ref for ref in self.references if not ref.is_valid and not ref.is_circular]

    @property
    def dependencies(self) -> list[str]:
        """Distinct valid reference names, in first-seen order."""
        seen: list[str] = []
        for ref in self.references:
            if ref.is_valid and ref.name not in seen:
                seen.append(ref.name)
        return seen

    def errors_by_field(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for issue in self.errors:
            out.setdefault(issue.field, issue.message)
        return out

    def highlights(self) -> list[HighlightSegment]:
        states = {ref.start: ref.state for ref in self.references}
        return highlight_segments(self.draft.rules, list(self.tokens), states)


def _own_names(draft: ColumnDraft) -> set[str]:
    names = {draft.name.strip(), normalize_column_name(draft.name)}
    if draft.current_name:
        names.add(draft.current_name)
    names.discard("")
    return names


def _issue(field_name: str, code: str, location: str, issue: str, hint: str, *, severity: str = SEVERITY_ERROR) -> ValidationIssue:
    return ValidationIssue(
        severity=severity,
        field=field_name,
        code=code,
        location=location,
        message=format_actionable_error("", location, issue, hint),
    )


def _check_random_commands(commands: list[RuleToken], location: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for token in commands:
        if token.kind == RANDOM_RANGE and token.low is not None and token.high is not None and token.low > token.high:
            issues.append(
                _issue(
                    "rules",
                    "inverted_random_range",
                    location,
                    f"{token.text} has a lower bound above its upper bound",
                    f"write @RANDOM_INT_{token.high}_{token.low} instead",
                    severity=SEVERITY_WARN,
                )
            )
        if token.kind == RANDOM_SINGLE and token.bound == 0:
            issues.append(
                _issue(
                    "rules",
                    "empty_random_range",
                    location,
                    f"{token.text} has no values to choose from",
                    "use a bound of 1 or more",
                    severity=SEVERITY_WARN,
                )
            )
    return issues


def validate_column_draft(draft: ColumnDraft, columns: list[Column]) -> ColumnValidationResult:
    """Decide whether a draft is acceptable against the current column set. Never raises."""

    name = normalize_column_name(draft.name)
    label = f"Column '{name}'" if name else "New column"
    issues: list[ValidationIssue] = []

    if name == "":
        issues.append(_issue("name", "name_required", label, "column name is required", "enter a column name"))
    else:
        for column in columns:
            if draft.column_id is not None and column.id == draft.column_id:
                continue
            if column.name == name:
                issues.append(
                    _issue(
                        "name",
                        "duplicate_name",
                        label,
                        f"another column is already named '{name}'",
                        "choose a name that is unique within the dataset",
                    )
                )
                break

    column_type = normalize_column_type(draft.column_type)
    if column_type == "":
        issues.append(_issue("column_type", "type_required", label, "column type is required", "select a column type"))
    elif column_type not in COLUMN_TYPES:
        allowed = ", ".join(COLUMN_TYPES)
        issues.append(
            _issue(
                "column_type",
                "unsupported_type",
                label,
                f"unsupported column type '{draft.column_type}'",
                f"use one of: {allowed}",
            )
        )

    type_schema: dict[str, object] | None = None
    if column_type == "JSON":
        type_schema, schema_error = parse_type_schema(draft.type_details)
        if schema_error is not None:
            code = "type_details_required" if not str(draft.type_details or "").strip() else "invalid_type_details"
            issues.append(
                ValidationIssue(
                    severity=SEVERITY_ERROR,
                    field="type_details",
                    code=code,
                    location=label,
                    message=f"{label} / {schema_error}",
                )
            )

    rules = draft.rules or ""
    commands = random_tokens(rules)
    references = reference_tokens(rules, commands)
    tokens = tuple(sorted(commands + references, key=lambda token: token.start))

    own_names = _own_names(draft)
    known_names = {column.name for column in columns}
    checks: list[ReferenceCheck] = []
    for token in references:
        ref_name = token.name or ""
        is_circular = ref_name in own_names
        checks.append(
            ReferenceCheck(
                name=ref_name,
                start=token.start,
                end=token.end,
                is_circular=is_circular,
                is_valid=(ref_name in known_names) and not is_circular,
            )
        )

    if rules.strip() == "":
        issues.append(_issue("rules", "rules_required", label, "generation rules are required", "describe how values are generated"))
    else:
        circular = sorted({ref.name for ref in checks if ref.is_circular})
        invalid = sorted({ref.name for ref in checks if not ref.is_valid and not ref.is_circular})
        if circular:
            refs = ", ".join(f"@{ref}" for ref in circular)
            issues.append(
                _issue(
                    "rules",
                    "circular_reference",
                    label,
                    f"rules reference the column itself ({refs})",
                    "remove self references from the rules",
                )
            )
        if invalid:
            refs = ", ".join(f"@{ref}" for ref in invalid)
            issues.append(
                _issue(
                    "rules",
                    "invalid_reference",
                    label,
                    f"rules reference unknown columns ({refs})",
                    "reference only existing column names",
                )
            )
        issues.extend(_check_random_commands(commands, label))

    return ColumnValidationResult(
        draft=draft,
        tokens=tokens,
        references=tuple(checks),
        issues=tuple(issues),
        type_schema=type_schema,
    )

# To run:
# python -m rowforge.main --columns first_name,last_name --name email "@first_name.@last_name@RANDOM_INT_10_99"


import argparse
import logging
import sys
import traceback

from rowforge.column_validation import ColumnDraft, validate_column_draft
from rowforge.config import AppConfig
from rowforge.dataset_model import Column
from rowforge.logging_setup import setup_logging
from rowforge.rule_tokens import describe_token

logger = logging.getLogger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rowforge",
        description="Inspect a column generation rule: tokens, references and validation issues.",
    )
    parser.add_argument("rules", help="rule text, for example \"@name @RANDOM_INT_1_6\"")
    parser.add_argument("--name", default="new_column", help="name of the column being defined")
    parser.add_argument("--type", dest="column_type", default="TEXT", help="column type (TEXT, INT, FLOAT, BOOL, JSON)")
    parser.add_argument("--type-details", default="", help="JSON type-detail schema for JSON columns")
    parser.add_argument("--columns", default="", help="comma-separated names of the existing columns")
    parser.add_argument("--log-level", default=None, help="override the configured log level")
    return parser


def _existing_columns(names: str) -> list[Column]:
    columns: list[Column] = []
    for name in (part.strip() for part in names.split(",")):
        if name:
            columns.append(Column(len(columns) + 1, "cli", name, "TEXT", "", len(columns)))
    return columns


def inspect_rule(args: argparse.Namespace) -> list[str]:
    draft = ColumnDraft(
        name=args.name,
        column_type=args.column_type,
        rules=args.rules,
        type_details=args.type_details,
    )
    result = validate_column_draft(draft, _existing_columns(args.columns))
    states = {ref.start: ref.state for ref in result.references}

    lines: list[str] = []
    for token in result.tokens:
        line = f"[{token.start}:{token.end}] {token.text} - {describe_token(token)}"
        if token.start in states:
            line += f" ({states[token.start]})"
        lines.append(line)
    if not result.tokens:
        lines.append("No tokens found.")
    for issue in result.issues:
        lines.append(f"{issue.severity.upper()} {issue.code}: {issue.message}")
    lines.append("Accepted." if result.accepted else "Rejected.")
    return lines


def main(argv: list[str] | None = None) -> int:
    cfg = AppConfig()
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level or cfg.log_level)
    logger.debug("Inspecting rule for column '%s'", args.name)

    try:
        lines = inspect_rule(args)
    except Exception as exc:
        logger.error("Unhandled error: %s", exc)
        if cfg.debug:
            traceback.print_exc()
        return 1

    sys.stdout.write("\n".join(lines) + "\n")
    return 0 if lines[-1] == "Accepted." else 2


if __name__ == "__main__":
    raise SystemExit(main())

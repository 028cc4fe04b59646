from __future__ import annotations

import io
import sys
import unittest
from datetime import datetime
from pathlib import Path

# To run:
# python run_tests_with_logs.py            (all suites)
# python run_tests_with_logs.py workspace  (tests/test_*workspace*.py only)

TESTS_DIR = Path("tests")
LOG_DIR = TESTS_DIR / "testlogs"


def _timestamp(now: datetime | None = None) -> str:
    ts = now or datetime.now()
    return ts.strftime("%Y%m%d_%H%M%S")


def _failure_log_path(log_dir: Path, now: datetime | None = None) -> Path:
    return log_dir / f"test_failures_{_timestamp(now)}.txt"


def _pattern_for(argv: list[str]) -> str:
    if not argv:
        return "test_*.py"
    return f"test_*{argv[0].strip()}*.py"


def _failing_test_ids(result: unittest.result.TestResult) -> list[str]:
    ids: list[str] = []
    for test, _trace in list(result.failures) + list(result.errors):
        ids.append(test if isinstance(test, str) else test.id())
    return sorted(set(ids))


def _build_failure_report(result: unittest.result.TestResult, test_output: str) -> str:
    lines: list[str] = []
    lines.append(f"Timestamp: {datetime.now().isoformat(timespec='seconds')}")
    lines.append(
        "Summary: "
        f"ran={result.testsRun}, failures={len(result.failures)}, errors={len(result.errors)}"
    )
    failing = _failing_test_ids(result)
    if failing:
        lines.append("Failing tests:")
        lines.extend(f"  - {test_id}" for test_id in failing)
    lines.append("Fix hint: rerun one suite with 'python run_tests_with_logs.py <name>' after fixing it.")
    lines.append("")
    lines.append(test_output.rstrip())
    lines.append("")
    return "\n".join(lines)


def _write_failure_report(log_dir: Path, content: str, now: datetime | None = None) -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    path = _failure_log_path(log_dir, now)
    path.write_text(content, encoding="utf-8")
    return path


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    loader = unittest.TestLoader()
    suite = loader.discover(start_dir=str(TESTS_DIR), pattern=_pattern_for(args))

    output = io.StringIO()
    runner = unittest.TextTestRunner(stream=output, verbosity=2)
    result = runner.run(suite)

    test_output = output.getvalue()
    sys.stdout.write(test_output)

    if result.wasSuccessful():
        print("All tests passed. No failure log written.")
        return 0

    report = _build_failure_report(result, test_output)
    log_path = _write_failure_report(LOG_DIR, report)
    print(f"Test failures detected. Log written to: {log_path}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())

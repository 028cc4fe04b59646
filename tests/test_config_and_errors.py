import logging
import unittest
from dataclasses import replace

from rowforge.config import AppConfig
from rowforge.config import validate_config
from rowforge import error_contract
from rowforge.error_contract import coerce_actionable_message
from rowforge.error_contract import format_actionable_error
from rowforge.error_contract import is_actionable_message
from rowforge.logging_setup import LOG_FORMAT
from rowforge.logging_setup import setup_logging


class TestAppConfig(unittest.TestCase):
    def test_defaults_are_valid(self):
        cfg = AppConfig()
        validate_config(cfg)
        self.assertEqual(cfg.page_capacity, 100)
        self.assertEqual(cfg.max_resource_hint, 99)

    def test_invalid_values_raise_actionable_errors(self):
        bad_configs = [
            replace(AppConfig(), page_capacity=0),
            replace(AppConfig(), default_page_size=0),
            replace(AppConfig(), default_page_size=200),
            replace(AppConfig(), max_resource_hint=-1),
            replace(AppConfig(), default_resource_hint=100),
            replace(AppConfig(), cancelled_run_memory=0),
        ]
        for cfg in bad_configs:
            with self.assertRaises(ValueError) as ctx:
                validate_config(cfg)
            self.assertTrue(is_actionable_message(str(ctx.exception)), str(ctx.exception))


class TestErrorContract(unittest.TestCase):
    def test_format_with_and_without_context(self):
        self.assertEqual(
            format_actionable_error("Datasets", "Name", "name is required.", "enter a name"),
            "Datasets / Name: name is required. Fix: enter a name.",
        )
        self.assertEqual(
            format_actionable_error("", "Name", "", ""),
            "Name: unknown issue. Fix: review input and retry.",
        )

    def test_coerce_keeps_actionable_and_wraps_raw(self):
        actionable = "Start: service offline. Fix: start the service."
        self.assertEqual(coerce_actionable_message("Run", actionable, location="x", hint="y"), actionable)

        wrapped = coerce_actionable_message("Run", RuntimeError("boom"), location="Start", hint="retry")
        self.assertEqual(wrapped, "Run / Start: boom. Fix: retry.")
        self.assertTrue(is_actionable_message(wrapped))

    def test_public_surface_is_helpers_and_outcome(self):
        self.assertEqual(
            sorted(error_contract.__all__),
            ["OperationOutcome", "coerce_actionable_message", "format_actionable_error", "is_actionable_message"],
        )
        self.assertFalse(is_actionable_message("Start: no fix hint."))


class TestLoggingSetup(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        self._saved_level = root.level
        self._saved_handlers = list(root.handlers)

    def tearDown(self) -> None:
        root = logging.getLogger()
        root.handlers[:] = self._saved_handlers
        root.setLevel(self._saved_level)

    def test_setup_is_idempotent(self):
        root = setup_logging("debug")
        setup_logging("WARNING")
        named = [h for h in root.handlers if h.get_name() == "rowforge-console"]
        self.assertEqual(len(named), 1)
        self.assertEqual(root.level, logging.WARNING)
        self.assertEqual(named[0].formatter._fmt, LOG_FORMAT)

    def test_unknown_level_falls_back_to_info(self):
        root = setup_logging("chatty")
        self.assertEqual(root.level, logging.INFO)


if __name__ == "__main__":
    unittest.main()

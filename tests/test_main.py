import contextlib
import io
import logging
import unittest

from rowforge.main import main


class TestRuleInspectionCli(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        self._saved_level = root.level
        self._saved_handlers = list(root.handlers)

    def tearDown(self) -> None:
        root = logging.getLogger()
        root.handlers[:] = self._saved_handlers
        root.setLevel(self._saved_level)

    def _run(self, argv: list[str]) -> tuple[int, str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main(argv + ["--log-level", "ERROR"])
        return code, out.getvalue()

    def test_accepted_rule_lists_tokens(self):
        code, text = self._run(["--columns", "first,last", "--name", "email", "@first.@last@RANDOM_INT_10_99"])
        self.assertEqual(code, 0)
        self.assertIn("[0:6] @first - Reference to column 'first' (valid)", text)
        self.assertIn("Random integer from 10 to 99", text)
        self.assertTrue(text.rstrip().endswith("Accepted."))

    def test_rejected_rule_reports_issues(self):
        code, text = self._run(["--name", "email", "@email @ghost"])
        self.assertEqual(code, 2)
        self.assertIn("ERROR circular_reference", text)
        self.assertIn("ERROR invalid_reference", text)
        self.assertTrue(text.rstrip().endswith("Rejected."))

    def test_rule_without_tokens(self):
        code, text = self._run(["plain description"])
        self.assertEqual(code, 0)
        self.assertIn("No tokens found.", text)


if __name__ == "__main__":
    unittest.main()

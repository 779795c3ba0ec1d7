"""
Tests for progress reporting and cancellation tokens.
"""

import threading
import unittest
from unittest.mock import MagicMock

from export_ops import CancellationError, CancellationToken, ProgressReporter
from export_ops.progress import check_cancelled


class TestProgressReporter(unittest.TestCase):
    def test_reports_values(self):
        callback = MagicMock()
        reporter = ProgressReporter(callback)

        reporter.report("Creating ZIP package...")
        reporter.report_fraction(1, 4)

        callback.assert_any_call("Creating ZIP package...")
        callback.assert_any_call(25.0)

    def test_callback_errors_swallowed(self):
        reporter = ProgressReporter(MagicMock(side_effect=ValueError("boom")))

        reporter.report(50.0)

    def test_no_callback_is_fine(self):
        ProgressReporter().report("ignored")

    def test_throttling_reports_about_every_five_percent(self):
        callback = MagicMock()
        reporter = ProgressReporter(callback)

        for index in range(100):
            reporter.report_item(index, 100)

        self.assertEqual(callback.call_count, 21)
        self.assertEqual(callback.call_args[0][0], 100.0)

    def test_zero_total_ignored(self):
        callback = MagicMock()
        ProgressReporter(callback).report_fraction(0, 0)

        callback.assert_not_called()


class TestCancellationToken(unittest.TestCase):
    def test_lifecycle(self):
        token = CancellationToken()
        self.assertFalse(token.cancelled)
        token.raise_if_cancelled()

        token.cancel()
        self.assertTrue(token.cancelled)
        with self.assertRaises(CancellationError):
            token.raise_if_cancelled()

        token.reset()
        self.assertFalse(token.cancelled)

    def test_cancel_from_another_thread(self):
        token = CancellationToken()
        worker = threading.Thread(target=token.cancel)
        worker.start()
        worker.join()

        self.assertTrue(token.cancelled)

    def test_check_cancelled_accepts_none(self):
        check_cancelled(None)

    def test_cancellation_error_message(self):
        self.assertEqual(str(CancellationError()), "Export cancelled")


if __name__ == "__main__":
    unittest.main()

"""
Progress reporting and cooperative cancellation for export runs.

Progress callbacks receive either a percentage (float, 0-100) or a free-text
status string. They are advisory: anything they raise is logged and dropped.
"""

import threading
from typing import Callable, Optional, Union

from colored_logger import get_colored_logger

from .errors import CancellationError

logger = get_colored_logger(__name__)

ProgressValue = Union[float, str]
ProgressCallback = Callable[[ProgressValue], None]


class ProgressReporter:
    """Thread-safe wrapper around a single optional progress callback."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self._lock = threading.Lock()

    def should_report_progress(self, current_index: int, total: int) -> bool:
        """Report roughly every 5% of the work and always on the last item."""
        return current_index % max(1, total // 20) == 0 or current_index == total - 1

    def report(self, value: ProgressValue) -> None:
        """Invoke the callback, swallowing anything it raises."""
        if not self.callback:
            return
        with self._lock:
            try:
                self.callback(value)
            except Exception as e:
                logger.debug("Progress callback raised, ignoring: %s", e)

    def report_fraction(self, current: int, total: int) -> None:
        """Report ``current`` of ``total`` as a percentage."""
        if total <= 0:
            return
        self.report(round(current / total * 100.0, 1))

    def report_item(self, current_index: int, total: int) -> None:
        """Report progress for item ``current_index`` when throttling allows."""
        if self.should_report_progress(current_index, total):
            self.report_fraction(current_index + 1, total)


class CancellationToken:
    """
    Explicit cancellation flag shared between the caller and one export run.

    The caller (typically a UI thread) calls ``cancel()``; the pipeline calls
    ``raise_if_cancelled()`` before each unit of work.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.debug("Cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError()

    def reset(self) -> None:
        self._event.clear()


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """Raise ``CancellationError`` if ``token`` is set; ``None`` never cancels."""
    if token is not None:
        token.raise_if_cancelled()

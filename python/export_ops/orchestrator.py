"""
Archive export orchestration.

Tries, in order: a compressed archive from the injected backend, a stored
archive from ``ZipArchiveWriter``, and finally one download per file. A
cancellation observed anywhere ends the run immediately; every other failure
only moves the run on to the next tier.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional

from colored_logger import get_colored_logger
from settings import ExportSettings

from .backends import CompressionBackend
from .entries import FileEntry, is_priority_file, order_for_delivery, valid_entries
from .errors import ArchiveIOError, CancellationError, DownloadError
from .filenames import sanitize, sanitize_archive_name
from .info import info_entry
from .progress import CancellationToken, ProgressCallback, ProgressReporter, check_cancelled
from .sinks import DownloadSink
from .verifier import ArchiveVerifier
from .zip_writer import EOCD_SIZE, ZipArchiveWriter

logger = get_colored_logger(__name__)

ConfirmCallback = Callable[[str], bool]
DeliveryErrorCallback = Callable[[str, Exception], bool]


class ExportMethod(Enum):
    COMPRESSED = "compressed"
    STORED = "stored"
    DIRECT = "direct"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ExportState(Enum):
    IDLE = "idle"
    TRY_COMPRESSED = "try_compressed"
    TRY_STORED = "try_stored"
    TRY_DIRECT = "try_direct"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class ExportResult:
    """Outcome of one export run."""

    success: bool
    method: ExportMethod
    filename: Optional[str] = None
    error: Optional[str] = None
    delivered_count: int = 0


def _decline(message: str) -> bool:
    return False


def _keep_going(filename: str, error: Exception) -> bool:
    return True


class ArchiveExportOrchestrator:
    """
    Coordinates the export tiers for one caller.

    Only one export may run at a time per instance. Collaborators are
    injected: ``backend=None`` means no compressor is installed, ``confirm``
    is asked before many separate downloads (declines by default), and
    ``on_delivery_error`` decides whether the direct tier keeps going after a
    failed download (continues by default).
    """

    def __init__(
        self,
        sink: DownloadSink,
        backend: Optional[CompressionBackend] = None,
        writer: Optional[ZipArchiveWriter] = None,
        confirm: Optional[ConfirmCallback] = None,
        on_delivery_error: Optional[DeliveryErrorCallback] = None,
        sleep: Callable[[float], None] = time.sleep,
        settings: Optional[ExportSettings] = None,
        verifier: Optional[ArchiveVerifier] = None,
    ):
        self.sink = sink
        self.backend = backend
        self.writer = writer or ZipArchiveWriter()
        self.confirm = confirm or _decline
        self.on_delivery_error = on_delivery_error or _keep_going
        self.sleep = sleep
        self.settings = settings or ExportSettings(env_file=None)
        self.verifier = verifier or ArchiveVerifier()

        apply_settings = getattr(self.backend, "apply_settings", None)
        if apply_settings is not None:
            apply_settings(self.settings)

        self.state = ExportState.IDLE
        self.transitions: List[ExportState] = []
        self._run_lock = threading.Lock()

    def _enter(self, state: ExportState) -> None:
        logger.debug("Export state: %s -> %s", self.state.value, state.value)
        self.state = state
        self.transitions.append(state)

    def _finish(self, state: ExportState, result: ExportResult) -> ExportResult:
        self._enter(state)
        return result

    def _deliver_archive(self, data: bytes, archive_name: str, token: Optional[CancellationToken]) -> None:
        # A cancelled run never hands a buffer to the sink
        check_cancelled(token)
        self.sink.deliver(data, archive_name)

    def _try_compressed(
        self,
        entries: List[FileEntry],
        archive_name: str,
        reporter: ProgressReporter,
        token: Optional[CancellationToken],
    ) -> Optional[ExportResult]:
        self._enter(ExportState.TRY_COMPRESSED)

        if self.backend is None or not self.backend.is_available():
            logger.debug("No compression backend available, skipping compressed tier")
            return None

        reporter.report("Creating compressed archive...")
        try:
            data = self.backend.build(entries, archive_name, reporter.report, token)
            if not data:
                raise ValueError("compression backend returned an empty archive")
            reporter.report("Downloading archive...")
            self._deliver_archive(data, archive_name, token)
        except CancellationError:
            raise
        except Exception as e:
            logger.warning("Compressed archive failed, falling back to stored ZIP: %s", e)
            return None

        logger.success("Compressed archive delivered: %s (%d bytes)", archive_name, len(data))
        return ExportResult(
            success=True,
            method=ExportMethod.COMPRESSED,
            filename=archive_name,
            delivered_count=1,
        )

    def _try_stored(
        self,
        entries: List[FileEntry],
        archive_name: str,
        reporter: ProgressReporter,
        token: Optional[CancellationToken],
    ) -> Optional[ExportResult]:
        self._enter(ExportState.TRY_STORED)
        reporter.report("Creating ZIP package...")

        try:
            data = self.writer.finalize(entries, token, reporter.report)
            if len(data) <= EOCD_SIZE:
                raise ValueError(f"stored archive is only {len(data)} bytes")

            if self.settings.verify_stored_archive and not self.verifier.verify_bytes(data):
                logger.warning("Stored archive %s did not pass read-back verification", archive_name)

            reporter.report("Downloading archive...")
            self._deliver_archive(data, archive_name, token)
        except CancellationError:
            raise
        except Exception as e:
            logger.warning("Stored ZIP failed, falling back to direct downloads: %s", e)
            return None

        logger.success("Stored archive delivered: %s (%d bytes)", archive_name, len(data))
        return ExportResult(
            success=True,
            method=ExportMethod.STORED,
            filename=archive_name,
            delivered_count=1,
        )

    def _try_direct(
        self,
        entries: List[FileEntry],
        reporter: ProgressReporter,
        token: Optional[CancellationToken],
    ) -> ExportResult:
        self._enter(ExportState.TRY_DIRECT)

        ordered = order_for_delivery(valid_entries(entries))
        total = len(ordered)

        if total > self.settings.confirm_threshold:
            message = (
                f"ZIP creation failed. Download all {total} files separately? "
                "Your browser or system may ask to allow multiple downloads."
            )
            if not self.confirm(message):
                logger.failure("Direct download of %d files declined", total)
                return self._finish(
                    ExportState.FAILED,
                    ExportResult(
                        success=False,
                        method=ExportMethod.FAILED,
                        error="Archive creation failed and separate downloads were declined",
                    ),
                )

        reporter.report(f"ZIP creation failed. Downloading {total} files separately...")

        delivered = 0
        aborted = False
        for index, entry in enumerate(ordered):
            check_cancelled(token)

            filename = sanitize(entry.name)
            reporter.report(f"Downloading file {index + 1}/{total}: {filename}")
            logger.progress("Downloading file %d/%d: %s", index + 1, total, filename)

            try:
                self.sink.deliver(entry.read_bytes(), filename)
                delivered += 1
            except CancellationError:
                raise
            except Exception as e:
                delivery_error = e
                if not isinstance(e, (DownloadError, ArchiveIOError)):
                    delivery_error = DownloadError(f"Failed to download {filename}: {e}")
                logger.warning("Failed to download %s: %s", filename, e)
                if not self.on_delivery_error(filename, delivery_error):
                    logger.notice("Direct downloads aborted after %d of %d files", delivered, total)
                    aborted = True
                    break

            if index < total - 1:
                delay = (
                    self.settings.priority_delay_seconds
                    if is_priority_file(entry.name)
                    else self.settings.delivery_delay_seconds
                )
                if delay > 0:
                    self.sleep(delay)

        if delivered == 0:
            logger.failure("Export failed: no files could be delivered")
            return self._finish(
                ExportState.FAILED,
                ExportResult(
                    success=False,
                    method=ExportMethod.FAILED,
                    error="Export failed: no files could be delivered",
                ),
            )

        error = None
        if delivered < total:
            error = f"Delivered {delivered} of {total} files"
            if aborted:
                error += " (aborted)"

        logger.success("Delivered %d of %d files directly", delivered, total)
        return self._finish(
            ExportState.SUCCEEDED,
            ExportResult(
                success=True,
                method=ExportMethod.DIRECT,
                error=error,
                delivered_count=delivered,
            ),
        )

    def export_archive(
        self,
        entries: Iterable[FileEntry],
        archive_name: str,
        on_progress: Optional[ProgressCallback] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> ExportResult:
        """
        Package ``entries`` and deliver them through the sink.

        Args:
            entries: Files to export, in archive order
            archive_name: Desired archive filename (``.zip`` is appended if missing)
            on_progress: Receives percentages and status strings
            cancellation_token: Checked before each unit of work

        Returns:
            ExportResult describing which tier succeeded, or why none did
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Export already in progress, ignoring new request")
            return ExportResult(
                success=False, method=ExportMethod.FAILED, error="Export already in progress"
            )

        try:
            self.state = ExportState.IDLE
            self.transitions = []
            reporter = ProgressReporter(on_progress)
            archive_name = sanitize_archive_name(
                archive_name, default=self.settings.default_archive_name
            )

            entries = list(entries or [])
            if not valid_entries(entries):
                logger.failure("Export failed: no files to export")
                return self._finish(
                    ExportState.FAILED,
                    ExportResult(success=False, method=ExportMethod.FAILED, error="No files to export"),
                )

            if self.settings.include_info_file:
                entries.append(info_entry(archive_name, valid_entries(entries)))

            logger.info("Exporting %d files as %s", len(entries), archive_name)
            check_cancelled(cancellation_token)

            for attempt in (self._try_compressed, self._try_stored):
                result = attempt(entries, archive_name, reporter, cancellation_token)
                if result is not None:
                    reporter.report(100.0)
                    return self._finish(ExportState.SUCCEEDED, result)

            return self._try_direct(entries, reporter, cancellation_token)

        except CancellationError:
            logger.notice("Export of %s cancelled", archive_name)
            reporter.report("Export cancelled")
            return self._finish(
                ExportState.CANCELLED,
                ExportResult(success=False, method=ExportMethod.CANCELLED),
            )
        finally:
            self._run_lock.release()


def export_archive(
    entries: Iterable[FileEntry],
    archive_name: str,
    sink: DownloadSink,
    backend: Optional[CompressionBackend] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancellation_token: Optional[CancellationToken] = None,
    **kwargs,
) -> ExportResult:
    """One-shot export with a throwaway orchestrator."""
    orchestrator = ArchiveExportOrchestrator(sink, backend=backend, **kwargs)
    return orchestrator.export_archive(entries, archive_name, on_progress, cancellation_token)

"""
Compression backends for the first export tier.

A backend is injected into the orchestrator; passing ``None`` or a
``NullCompressionBackend`` means "no compression available", which is a
normal condition rather than an error.
"""

import io
import zipfile
from typing import List, Optional, Protocol

from colored_logger import get_colored_logger

from .entries import FileEntry, valid_entries
from .errors import ArchiveIOError, ValidationError
from .filenames import FilenameSanitizer
from .progress import CancellationToken, ProgressCallback, ProgressReporter, check_cancelled

logger = get_colored_logger(__name__)

try:
    import zlib  # noqa: F401  (zipfile needs it for ZIP_DEFLATED)

    ZLIB_AVAILABLE = True
except ImportError:
    ZLIB_AVAILABLE = False


def _clamp_level(level: int) -> int:
    return max(0, min(9, int(level)))


class CompressionBackend(Protocol):
    """Capability interface for building a compressed archive."""

    def is_available(self) -> bool:
        ...

    def build(
        self,
        entries: List[FileEntry],
        archive_name: str,
        on_progress: Optional[ProgressCallback] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> bytes:
        """Return the complete archive bytes."""
        ...


class NullCompressionBackend:
    """Backend standing in for "no compressor installed"."""

    def is_available(self) -> bool:
        return False

    def build(self, entries, archive_name, on_progress=None, cancellation_token=None) -> bytes:
        raise RuntimeError("No compression backend available")


class DeflateCompressionBackend:
    """
    Builds DEFLATE-compressed ZIP archives in memory with ``zipfile``.

    Without an explicit ``compression_level`` the level comes from the
    orchestrator's settings via ``apply_settings``.
    """

    DEFAULT_LEVEL = 6

    def __init__(
        self,
        compression_level: Optional[int] = None,
        sanitizer: Optional[FilenameSanitizer] = None,
    ):
        self._level_pinned = compression_level is not None
        self.compression_level = _clamp_level(
            self.DEFAULT_LEVEL if compression_level is None else compression_level
        )
        self.sanitizer = sanitizer or FilenameSanitizer()

    def apply_settings(self, settings) -> None:
        """Adopt ``settings.compression_level`` unless a level was given explicitly."""
        if not self._level_pinned:
            self.compression_level = _clamp_level(settings.compression_level)

    def is_available(self) -> bool:
        return ZLIB_AVAILABLE

    def _create_zipfile_instance(self, buffer: io.BytesIO) -> zipfile.ZipFile:
        return zipfile.ZipFile(
            buffer,
            "w",
            zipfile.ZIP_DEFLATED,
            compresslevel=self.compression_level,
            allowZip64=False,
        )

    def build(
        self,
        entries: List[FileEntry],
        archive_name: str,
        on_progress: Optional[ProgressCallback] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> bytes:
        """Compress ``entries`` into a ZIP archive and return its bytes."""
        if not self.is_available():
            raise RuntimeError("zlib is not available for DEFLATE compression")

        usable = valid_entries(entries or [])
        if not usable:
            raise ValidationError("No valid files to archive")

        reporter = ProgressReporter(on_progress)
        buffer = io.BytesIO()
        written = 0

        with self._create_zipfile_instance(buffer) as zipf:
            for index, entry in enumerate(usable):
                check_cancelled(cancellation_token)
                name = self.sanitizer.sanitize(entry.name)
                try:
                    zipf.writestr(name, entry.read_bytes())
                    written += 1
                except ArchiveIOError as e:
                    logger.warning("Failed to add %s to %s: %s", name, archive_name, e)
                    continue

                reporter.report_item(index, len(usable))

        if written == 0:
            raise ValidationError("No entries could be compressed")

        logger.debug(
            "Compressed archive %s built: %d entries, %d bytes",
            archive_name,
            written,
            buffer.tell(),
        )
        return buffer.getvalue()

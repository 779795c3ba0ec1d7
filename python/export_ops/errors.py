"""
Exception taxonomy for the archive export pipeline.

Per-entry problems (``FormatError``, ``ArchiveIOError``) are handled where the
entry is encoded; ``CancellationError`` is the only error allowed to unwind
through every tier.
"""


class ExportError(Exception):
    """Base class for all export pipeline errors."""

    pass


class ValidationError(ExportError):
    """Raised when there are no usable entries to archive."""

    pass


class FormatError(ExportError):
    """Raised when a value does not fit its ZIP header field."""

    pass


class ArchiveIOError(ExportError, OSError):
    """Raised when an entry's bytes cannot be read."""

    pass


class CancellationError(ExportError):
    """Raised when the user or the host application aborts an export."""

    def __init__(self, message: str = "Export cancelled"):
        super().__init__(message)


class DownloadError(ExportError):
    """Raised when a download sink refuses or fails to deliver a file."""

    pass

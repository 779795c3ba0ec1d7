from .errors import (
    ExportError,
    ValidationError,
    FormatError,
    ArchiveIOError,
    CancellationError,
    DownloadError,
)
from .progress import ProgressReporter, CancellationToken
from .entries import (
    FileEntry,
    order_for_delivery,
    estimate_archive_size,
    format_size_estimate,
)
from .filenames import FilenameSanitizer, sanitize, sanitize_archive_name

# Archive building tiers
from .zip_writer import ZipArchiveWriter, dos_date_time
from .backends import (
    CompressionBackend,
    DeflateCompressionBackend,
    NullCompressionBackend,
)
from .sinks import DownloadSink, DirectorySink, MemorySink
from .verifier import ArchiveVerifier
from .info import build_info_text

# Main orchestrator
from .orchestrator import (
    ArchiveExportOrchestrator,
    ExportMethod,
    ExportResult,
    ExportState,
    export_archive,
)

__all__ = [
    # Errors
    "ExportError",
    "ValidationError",
    "FormatError",
    "ArchiveIOError",
    "CancellationError",
    "DownloadError",
    # Progress and cancellation
    "ProgressReporter",
    "CancellationToken",
    # Entries and names
    "FileEntry",
    "order_for_delivery",
    "estimate_archive_size",
    "format_size_estimate",
    "FilenameSanitizer",
    "sanitize",
    "sanitize_archive_name",
    # Archive building
    "ZipArchiveWriter",
    "dos_date_time",
    "CompressionBackend",
    "DeflateCompressionBackend",
    "NullCompressionBackend",
    "ArchiveVerifier",
    "build_info_text",
    # Delivery
    "DownloadSink",
    "DirectorySink",
    "MemorySink",
    # Orchestration
    "ArchiveExportOrchestrator",
    "ExportMethod",
    "ExportResult",
    "ExportState",
    "export_archive",
]

"""
In-memory file entries handed to the export pipeline.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from colored_logger import get_colored_logger

from .errors import ArchiveIOError

logger = get_colored_logger(__name__)

EntryData = Union[bytes, bytearray, memoryview, Path]

# Companion files are delivered before the bulk payload in the direct tier
PRIORITY_SUFFIXES = (".html", ".htm", ".txt")
DEFAULT_COMPRESSION_RATIO = 0.7


@dataclass(frozen=True)
class FileEntry:
    """
    A named file to be packaged.

    ``data`` is either the file's bytes or a ``Path`` read lazily when the
    entry is encoded. ``size`` defaults to the known byte length (-1 when the
    data has not been read yet).
    """

    name: str
    data: Optional[EntryData]
    size: int = field(default=-1)

    def __post_init__(self):
        if self.size < 0 and isinstance(self.data, (bytes, bytearray, memoryview)):
            object.__setattr__(self, "size", len(self.data))

    @classmethod
    def from_path(cls, path: Union[str, Path], name: Optional[str] = None) -> "FileEntry":
        path = Path(path)
        try:
            size = path.stat().st_size
        except OSError:
            size = -1
        return cls(name=name or path.name, data=path, size=size)

    def is_valid(self) -> bool:
        """Entries without a name or without data are malformed."""
        return bool(self.name) and self.data is not None

    def read_bytes(self) -> bytes:
        """Return the entry's content as immutable bytes."""
        if isinstance(self.data, Path):
            try:
                return self.data.read_bytes()
            except OSError as e:
                raise ArchiveIOError(f"Cannot read {self.data}: {e}") from e
        if isinstance(self.data, bytes):
            return self.data
        if isinstance(self.data, (bytearray, memoryview)):
            return bytes(self.data)
        raise ArchiveIOError(
            f"Unsupported data type for entry {self.name!r}: {type(self.data).__name__}"
        )


def valid_entries(entries: Iterable[FileEntry]) -> List[FileEntry]:
    """Drop malformed entries, logging each one."""
    result = []
    for entry in entries:
        if isinstance(entry, FileEntry) and entry.is_valid():
            result.append(entry)
        else:
            logger.warning("Skipping malformed entry: %r", entry)
    return result


def is_priority_file(name: str) -> bool:
    return name.lower().endswith(PRIORITY_SUFFIXES)


def order_for_delivery(entries: Iterable[FileEntry]) -> List[FileEntry]:
    """
    Order entries for one-by-one delivery.

    HTML previews come first, then text info files, then everything else in
    the order supplied.
    """
    entries = list(entries)

    def rank(entry: FileEntry) -> int:
        lowered = entry.name.lower()
        if lowered.endswith((".html", ".htm")):
            return 0
        if lowered.endswith(".txt"):
            return 1
        return 2

    # sorted() is stable, so input order survives within each rank
    return sorted(entries, key=rank)


def total_size(entries: Iterable[FileEntry]) -> int:
    return sum(max(entry.size, 0) for entry in entries)


def estimate_archive_size(
    entries: Iterable[FileEntry], ratio: float = DEFAULT_COMPRESSION_RATIO
) -> int:
    """Rough compressed size assuming ZIP saves about 30%."""
    return int(total_size(entries) * ratio)


def format_size_estimate(
    entries: Iterable[FileEntry], ratio: float = DEFAULT_COMPRESSION_RATIO
) -> str:
    """Human readable estimate, e.g. ``"12 KB"`` or ``"3.4 MB"``."""
    estimated = estimate_archive_size(entries, ratio)
    if estimated < 1024 * 1024:
        return f"{round(estimated / 1024)} KB"
    return f"{estimated / (1024 * 1024):.1f} MB"

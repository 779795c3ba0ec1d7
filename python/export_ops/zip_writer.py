"""
Dependency-free ZIP encoder using the "store" method.

Produces a complete archive in memory: one local file header plus raw data per
entry, the central directory, and the end-of-central-directory record. All
multi-byte fields are little-endian. zip64 is not supported, so entries must
stay under 4 GiB and archives under 65535 entries.
"""

import binascii
import struct
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from colored_logger import get_colored_logger

from .entries import FileEntry, valid_entries
from .errors import ArchiveIOError, FormatError, ValidationError
from .filenames import FilenameSanitizer
from .progress import CancellationToken, ProgressCallback, ProgressReporter, check_cancelled

logger = get_colored_logger(__name__)

LOCAL_FILE_HEADER_SIGNATURE = 0x04034B50
CENTRAL_DIRECTORY_SIGNATURE = 0x02014B50
END_OF_CENTRAL_DIRECTORY_SIGNATURE = 0x06054B50

VERSION_NEEDED = 10  # 1.0, stored entries
VERSION_MADE_BY = 20  # 2.0, MS-DOS host
METHOD_STORED = 0
FLAG_UTF8_NAME = 0x0800

MAX_UINT16 = 0xFFFF
MAX_UINT32 = 0xFFFFFFFF

# signature, version needed, flags, method, time, date, crc32,
# compressed size, uncompressed size, name length, extra length
LOCAL_FILE_HEADER = struct.Struct("<IHHHHHIIIHH")
# signature, version made by, version needed, flags, method, time, date, crc32,
# compressed size, uncompressed size, name length, extra length,
# comment length, disk number, internal attrs, external attrs, local header offset
CENTRAL_DIRECTORY_HEADER = struct.Struct("<IHHHHHHIIIHHHHHII")
# signature, disk number, disk with central directory, entries on this disk,
# total entries, central directory size, central directory offset, comment length
END_OF_CENTRAL_DIRECTORY = struct.Struct("<IHHHHIIH")

EOCD_SIZE = END_OF_CENTRAL_DIRECTORY.size  # 22


def dos_date_time(moment: datetime) -> Tuple[int, int]:
    """
    Pack ``moment`` into MS-DOS (time, date) words.

    Years outside 1980..2107 are clamped to the representable range; seconds
    have two-second resolution.
    """
    if moment.year < 1980:
        return 0, (1 << 5) | 1  # 1980-01-01 00:00:00
    if moment.year > 2107:
        return (23 << 11) | (59 << 5) | 29, (127 << 9) | (12 << 5) | 31

    dos_time = (moment.hour << 11) | (moment.minute << 5) | (moment.second // 2)
    dos_date = ((moment.year - 1980) << 9) | (moment.month << 5) | moment.day
    return dos_time, dos_date


class _WrittenEntry:
    """Central directory bookkeeping for one entry already in the stream."""

    __slots__ = ("name_bytes", "flags", "crc", "size", "offset")

    def __init__(self, name_bytes: bytes, flags: int, crc: int, size: int, offset: int):
        self.name_bytes = name_bytes
        self.flags = flags
        self.crc = crc
        self.size = size
        self.offset = offset


class ZipArchiveWriter:
    """
    Encodes (name, bytes) entries into a stored (uncompressed) ZIP archive.

    Malformed entries, unreadable entries and entries whose name or size does
    not fit the header fields are skipped and recorded in ``skipped``; the
    archive fails only when nothing usable is left.
    """

    def __init__(
        self,
        sanitizer: Optional[FilenameSanitizer] = None,
        date_time: Optional[datetime] = None,
    ):
        self.sanitizer = sanitizer or FilenameSanitizer()
        self.date_time = date_time
        self.skipped: List[Tuple[str, str]] = []

    def _encode_name(self, raw_name: str) -> Tuple[bytes, int]:
        name = self.sanitizer.sanitize(raw_name)
        name_bytes = name.encode("utf-8")
        if len(name_bytes) > MAX_UINT16:
            raise FormatError(
                f"Entry name is {len(name_bytes)} bytes, limit is {MAX_UINT16}"
            )
        flags = 0 if name.isascii() else FLAG_UTF8_NAME
        return name_bytes, flags

    def _local_header(
        self, name_bytes: bytes, flags: int, dos_time: int, dos_date: int, crc: int, size: int
    ) -> bytes:
        return LOCAL_FILE_HEADER.pack(
            LOCAL_FILE_HEADER_SIGNATURE,
            VERSION_NEEDED,
            flags,
            METHOD_STORED,
            dos_time,
            dos_date,
            crc,
            size,
            size,
            len(name_bytes),
            0,
        ) + name_bytes

    def _central_header(self, entry: _WrittenEntry, dos_time: int, dos_date: int) -> bytes:
        return CENTRAL_DIRECTORY_HEADER.pack(
            CENTRAL_DIRECTORY_SIGNATURE,
            VERSION_MADE_BY,
            VERSION_NEEDED,
            entry.flags,
            METHOD_STORED,
            dos_time,
            dos_date,
            entry.crc,
            entry.size,
            entry.size,
            len(entry.name_bytes),
            0,
            0,
            0,
            0,
            0,
            entry.offset,
        ) + entry.name_bytes

    def _end_of_central_directory(self, count: int, cd_size: int, cd_offset: int) -> bytes:
        return END_OF_CENTRAL_DIRECTORY.pack(
            END_OF_CENTRAL_DIRECTORY_SIGNATURE,
            0,
            0,
            count,
            count,
            cd_size,
            cd_offset,
            0,
        )

    def _skip(self, entry: FileEntry, reason: str) -> None:
        logger.warning("Skipping entry %r: %s", entry.name, reason)
        self.skipped.append((entry.name, reason))

    def finalize(
        self,
        entries: Iterable[FileEntry],
        cancellation_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> bytes:
        """
        Build the archive and return its bytes.

        Args:
            entries: Files to store, written in the order given
            cancellation_token: Checked before each entry
            progress_callback: Receives a percentage after each reported entry

        Raises:
            ValidationError: No entries, or none survived filtering
            FormatError: The archive as a whole exceeds the non-zip64 limits
            CancellationError: The token was cancelled mid-run
        """
        entries = list(entries or [])
        self.skipped = []
        if not entries:
            raise ValidationError("No files to archive")

        usable = valid_entries(entries)
        if len(usable) < len(entries):
            self.skipped.extend(
                (getattr(entry, "name", None) or "", "malformed entry")
                for entry in entries
                if not (isinstance(entry, FileEntry) and entry.is_valid())
            )
        if not usable:
            raise ValidationError("No valid files to archive")

        reporter = ProgressReporter(progress_callback)
        dos_time, dos_date = dos_date_time(self.date_time or datetime.now())

        segments: List[bytes] = []
        written: List[_WrittenEntry] = []
        offset = 0

        for index, entry in enumerate(usable):
            check_cancelled(cancellation_token)

            try:
                name_bytes, flags = self._encode_name(entry.name)
                data = entry.read_bytes()
            except (FormatError, ArchiveIOError) as e:
                self._skip(entry, str(e))
                continue

            size = len(data)
            if size > MAX_UINT32:
                self._skip(entry, f"{size} bytes exceeds the 4 GiB limit without zip64")
                continue
            if offset > MAX_UINT32:
                raise FormatError("Archive exceeds 4 GiB without zip64")

            crc = binascii.crc32(data) & 0xFFFFFFFF
            header = self._local_header(name_bytes, flags, dos_time, dos_date, crc, size)
            segments.append(header)
            segments.append(data)
            written.append(_WrittenEntry(name_bytes, flags, crc, size, offset))
            logger.trace(
                "Stored %s at offset %d (%d bytes, crc %08x)",
                name_bytes.decode("utf-8"),
                offset,
                size,
                crc,
            )
            offset += len(header) + size

            reporter.report_item(index, len(usable))

        if not written:
            raise ValidationError("No entries could be written to the archive")
        if len(written) > MAX_UINT16:
            raise FormatError(
                f"{len(written)} entries exceeds the {MAX_UINT16} entry limit without zip64"
            )

        cd_offset = offset
        if cd_offset > MAX_UINT32:
            raise FormatError("Central directory offset exceeds 4 GiB without zip64")

        central = [self._central_header(item, dos_time, dos_date) for item in written]
        cd_size = sum(len(record) for record in central)
        segments.extend(central)
        segments.append(self._end_of_central_directory(len(written), cd_size, cd_offset))

        archive = b"".join(segments)
        logger.debug(
            "Stored archive built: %d entries, %d skipped, %d bytes",
            len(written),
            len(self.skipped),
            len(archive),
        )
        return archive

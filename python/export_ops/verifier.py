"""
Integrity checks for archives held in memory.
"""

import io
import zipfile
from typing import Any, Dict

from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

_EMPTY_INFO = {
    "file_count": 0,
    "compressed_size": 0,
    "uncompressed_size": 0,
    "compression_ratio": 0,
}


class ArchiveVerifier:
    """Reads an archive back with ``zipfile`` to confirm it is well formed."""

    def __init__(self, sample_files: int = 5):
        self.sample_files = sample_files

    def verify_bytes(self, data: bytes) -> bool:
        """Verify ZIP archive integrity, including CRCs of every entry."""
        try:
            with zipfile.ZipFile(io.BytesIO(data), "r") as zipf:
                bad_file = zipf.testzip()
                if bad_file is not None:
                    logger.debug("ZIP integrity check failed on file: %s", bad_file)
                    return False

                for filename in zipf.namelist()[: self.sample_files]:
                    with zipf.open(filename) as f:
                        f.read(1024)

                return True
        except (zipfile.BadZipFile, OSError, ValueError, EOFError) as e:
            logger.debug("ZIP integrity verification failed: %s", e)
            return False

    def get_archive_info(self, data: bytes) -> Dict[str, Any]:
        """Entry count, sizes and compression ratio of an in-memory ZIP."""
        try:
            with zipfile.ZipFile(io.BytesIO(data), "r") as zipf:
                infos = zipf.infolist()
        except (zipfile.BadZipFile, OSError, ValueError) as e:
            logger.debug("Error getting ZIP info: %s", e)
            return dict(_EMPTY_INFO)

        compressed = sum(info.compress_size for info in infos)
        uncompressed = sum(info.file_size for info in infos)
        return {
            "file_count": len(infos),
            "compressed_size": compressed,
            "uncompressed_size": uncompressed,
            "compression_ratio": (
                (1 - compressed / uncompressed) * 100 if uncompressed > 0 else 0
            ),
        }

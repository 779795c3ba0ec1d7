"""
Download sinks deliver finished bytes to the user.

Each host platform supplies its own sink (native save dialog, browser
download, ...). Two portable implementations live here: one writing into a
directory and one collecting deliveries in memory.
"""

import os
import tempfile
from pathlib import Path
from typing import List, Protocol, Tuple, Union

from colored_logger import get_colored_logger

from .errors import DownloadError
from .filenames import FilenameSanitizer

logger = get_colored_logger(__name__)


class DownloadSink(Protocol):
    """Delivers one byte buffer under one filename."""

    def deliver(self, data: bytes, filename: str) -> None:
        """Raises ``DownloadError`` when delivery is refused or fails."""
        ...


class MemorySink:
    """Keeps every delivery as a ``(filename, data)`` pair."""

    def __init__(self):
        self.deliveries: List[Tuple[str, bytes]] = []

    def deliver(self, data: bytes, filename: str) -> None:
        self.deliveries.append((filename, bytes(data)))

    @property
    def filenames(self) -> List[str]:
        return [filename for filename, _ in self.deliveries]


class DirectorySink:
    """Writes deliveries into a directory with atomic renames."""

    def __init__(self, directory: Union[str, Path], overwrite: bool = False):
        self.directory = Path(directory)
        self.overwrite = overwrite
        self.delivered: List[Path] = []
        # Nested entry names are flattened, so slashes become underscores
        self._sanitizer = FilenameSanitizer()

    def _target_path(self, filename: str) -> Path:
        safe_name = self._sanitizer.sanitize(filename).replace("/", "_")
        target = self.directory / safe_name
        if self.overwrite or not target.exists():
            return target

        stem, suffix = target.stem, target.suffix
        counter = 1
        while target.exists():
            target = self.directory / f"{stem}_{counter}{suffix}"
            counter += 1
        return target

    def deliver(self, data: bytes, filename: str) -> None:
        temp_path = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            target = self._target_path(filename)

            fd, temp_path = tempfile.mkstemp(
                dir=str(self.directory), prefix=f".{target.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)

            os.replace(temp_path, target)
            temp_path = None
        except OSError as e:
            raise DownloadError(f"Could not save {filename}: {e}") from e
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as cleanup_error:
                    logger.debug("Failed to cleanup temp file %s: %s", temp_path, cleanup_error)

        self.delivered.append(target)
        logger.debug("Saved %s (%d bytes)", target, len(data))

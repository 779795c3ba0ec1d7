"""
Filename utilities for archive entries.

Entry names always use forward slashes, never start with a slash and never
contain ``.``/``..`` segments, whatever platform produced them.
"""

import re
import unicodedata

from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

DEFAULT_NAME = "unnamed"
DEFAULT_ARCHIVE_NAME = "export.zip"
MAX_NAME_BYTES = 240
# Suffixes longer than this are treated as part of the stem when truncating
MAX_EXTENSION_CHARS = 16

_FORBIDDEN_CHARS = re.compile(r'[<>:"\\|?*]')
_EDGE_CHARS = re.compile(r"^[\s.]+|[\s.]+$")


class FilenameSanitizer:
    """Normalizes arbitrary names into safe, cross-platform archive entry names."""

    def __init__(self, default_name: str = DEFAULT_NAME, max_bytes: int = MAX_NAME_BYTES):
        self.default_name = default_name
        self.max_bytes = max_bytes

    def strip_forbidden(self, name: str) -> str:
        """Drop control characters and ``< > : " \\ | ? *``."""
        name = "".join(ch for ch in name if unicodedata.category(ch) != "Cc")
        return _FORBIDDEN_CHARS.sub("", name)

    def split_extension(self, name: str) -> tuple:
        """Split ``name`` into (stem, extension) on the last dot of the last segment."""
        head, _, tail = name.rpartition("/")
        dot = tail.rfind(".")
        if dot <= 0 or len(tail) - dot > MAX_EXTENSION_CHARS:
            return name, ""
        prefix = f"{head}/" if head else ""
        return prefix + tail[:dot], tail[dot:]

    def truncate(self, name: str) -> str:
        """Shorten the stem so the UTF-8 name fits ``max_bytes``, keeping the extension."""
        encoded = name.encode("utf-8")
        if len(encoded) <= self.max_bytes:
            return name

        stem, extension = self.split_extension(name)
        ext_bytes = extension.encode("utf-8")
        if len(ext_bytes) >= self.max_bytes:
            stem, extension, ext_bytes = name, "", b""

        budget = self.max_bytes - len(ext_bytes)
        # errors="ignore" drops a multi-byte character cut in half
        short_stem = stem.encode("utf-8")[:budget].decode("utf-8", errors="ignore")
        logger.debug("Entry name truncated to %d bytes: %s", self.max_bytes, short_stem)
        return short_stem + extension

    def trim(self, name: str) -> str:
        """Trim whitespace and dots from every path segment and drop empty ones."""
        segments = (_EDGE_CHARS.sub("", segment) for segment in name.split("/"))
        return "/".join(segment for segment in segments if segment)

    def sanitize(self, raw_name: str) -> str:
        """
        Return a safe archive entry name for ``raw_name``.

        Never fails and never returns an empty string; applying it twice gives
        the same result as applying it once.
        """
        if not raw_name:
            return self.default_name

        name = str(raw_name).replace("\\", "/")
        name = self.strip_forbidden(name)
        name = self.truncate(name)
        name = self.trim(name)

        return name or self.default_name


_default_sanitizer = FilenameSanitizer()


def sanitize(raw_name: str) -> str:
    """Sanitize ``raw_name`` with the default settings."""
    return _default_sanitizer.sanitize(raw_name)


def sanitize_archive_name(archive_name: str, default: str = DEFAULT_ARCHIVE_NAME) -> str:
    """Sanitize an archive filename and make sure it ends with ``.zip``."""
    # Archive names are delivered as a single file, so no directories
    name = FilenameSanitizer(default_name=default).sanitize(archive_name)
    name = name.replace("/", "_")
    if not name.lower().endswith(".zip"):
        name = f"{name}.zip"
    return name

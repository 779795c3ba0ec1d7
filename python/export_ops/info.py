"""
Human readable companion file describing an export package.
"""

from datetime import datetime
from typing import List, Optional

from .entries import FileEntry, format_size_estimate, total_size
from .filenames import sanitize

INFO_SUFFIX = "-info.txt"


def info_filename(archive_name: str) -> str:
    """``frames.zip`` -> ``frames-info.txt``."""
    stem = archive_name[:-4] if archive_name.lower().endswith(".zip") else archive_name
    return sanitize(f"{stem or 'export'}{INFO_SUFFIX}")


def _format_bytes(size: int) -> str:
    if size < 0:
        return "unknown size"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def build_info_text(
    archive_name: str,
    entries: List[FileEntry],
    created_at: Optional[datetime] = None,
) -> str:
    """Describe the package contents and how to open them."""
    created_at = created_at or datetime.now()
    title = "EXPORT PACKAGE INFO"

    lines = [
        title,
        "=" * len(title),
        "",
        f"Archive: {archive_name}",
        f"Export Date: {created_at.strftime('%B %d, %Y %H:%M')}",
        f"File Count: {len(entries)}",
        f"Total Size: {_format_bytes(total_size(entries))}"
        f" (compressed estimate {format_size_estimate(entries)})",
        "",
        "PACKAGE CONTENTS:",
    ]
    lines.extend(
        f"- {sanitize(entry.name)} ({_format_bytes(entry.size)})" for entry in entries
    )
    lines.extend(
        [
            f"- {info_filename(archive_name)} (this file)",
            "",
            "USAGE INSTRUCTIONS:",
            "- Unzip the downloaded file.",
            "- Open any HTML preview in a browser to review the package.",
            "- Image frames can be imported as a sequence into video or animation tools.",
            "",
        ]
    )
    return "\n".join(lines)


def info_entry(archive_name: str, entries: List[FileEntry], created_at: Optional[datetime] = None) -> FileEntry:
    text = build_info_text(archive_name, entries, created_at)
    return FileEntry(name=info_filename(archive_name), data=text.encode("utf-8"))

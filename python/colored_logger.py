import logging
import os
import sys

# Custom levels used by the export pipeline
TRACE_LEVEL = 5
PROGRESS_LEVEL = 22
SUCCESS_LEVEL = 25
NOTICE_LEVEL = 35
FAILURE_LEVEL = 45

logging.addLevelName(TRACE_LEVEL, "TRACE")
logging.addLevelName(PROGRESS_LEVEL, "PROGRESS")
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")
logging.addLevelName(NOTICE_LEVEL, "NOTICE")
logging.addLevelName(FAILURE_LEVEL, "FAILURE")

LOG_LEVEL_ENV = "ARCHIVE_EXPORT_LOG_LEVEL"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the whole record by level when writing to a TTY."""

    COLORS = {
        "TRACE": "\033[90m",  # Gray
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "PROGRESS": "\033[94m",  # Bright Blue
        "SUCCESS": "\033[92m",  # Bright Green
        "WARNING": "\033[33m",  # Yellow
        "NOTICE": "\033[96m",  # Bright Cyan
        "ERROR": "\033[31m",  # Red
        "FAILURE": "\033[91m",  # Bright Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str = None, datefmt: str = None, stream=None):
        super().__init__(fmt, datefmt)
        self.stream = stream or sys.stderr

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        isatty = getattr(self.stream, "isatty", None)
        if isatty and isatty():
            level_color = self.COLORS.get(record.levelname, "")
            return f"{level_color}{message}{self.COLORS['RESET']}"

        return message


def resolve_level(default: int = logging.INFO) -> int:
    """Read the log level from the environment, falling back to ``default``."""
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


def setup_colored_logging(level: int = None) -> None:
    """
    Configure colored console logging for applications embedding the exporter.

    Args:
        level: Logging level (default: ``ARCHIVE_EXPORT_LOG_LEVEL`` or INFO)
    """
    if level is None:
        level = resolve_level()

    formatter = ColoredFormatter(
        fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


class EnhancedLogger:
    """Logger wrapper exposing the custom pipeline levels as methods."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def trace(self, msg, *args, **kwargs):
        """Very detailed output, e.g. per-header byte offsets."""
        self._logger.log(TRACE_LEVEL, msg, *args, **kwargs)

    def progress(self, msg, *args, **kwargs):
        """Tier transitions and per-file delivery progress."""
        self._logger.log(PROGRESS_LEVEL, msg, *args, **kwargs)

    def success(self, msg, *args, **kwargs):
        """Archive delivered."""
        self._logger.log(SUCCESS_LEVEL, msg, *args, **kwargs)

    def notice(self, msg, *args, **kwargs):
        self._logger.log(NOTICE_LEVEL, msg, *args, **kwargs)

    def failure(self, msg, *args, **kwargs):
        """Every tier exhausted."""
        self._logger.log(FAILURE_LEVEL, msg, *args, **kwargs)

    # debug/info/warning/error/critical and the rest come from the wrapped logger
    def __getattr__(self, name):
        return getattr(self._logger, name)


def get_colored_logger(name: str) -> EnhancedLogger:
    """
    Get an enhanced logger instance with the custom pipeline levels.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Enhanced logger instance
    """
    return EnhancedLogger(logging.getLogger(name))

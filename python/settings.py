import json
import os
from typing import Any, Dict, Optional

from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

DEFAULT_SETTINGS_FILE = "export_settings.json"
ENV_PREFIX = "ARCHIVE_EXPORT_"


def _load_env_file(env_path: str) -> None:
    """
    Simple .env file parser that doesn't require external dependencies.
    Loads key=value pairs from .env file into os.environ.
    """
    if not os.path.isfile(env_path):
        return

    try:
        with open(env_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()

                if not line or line.startswith("#"):
                    continue

                if "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip()

                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]

                    # Only our own keys; the host application owns the rest
                    if key.startswith(ENV_PREFIX):
                        os.environ[key] = value

        logger.debug(".env file loaded from %s", env_path)

    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to load .env file: %s", e)


def _coerce(value: Any, default: Any) -> Any:
    """Convert ``value`` to the type of ``default``; keep ``default`` on failure."""
    if value is None:
        return default
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        return str(value)
    except (TypeError, ValueError):
        logger.warning("Invalid setting value %r, using default %r", value, default)
        return default


class ExportSettings:
    """
    Tunables for the archive export pipeline.

    Values come from an optional JSON file, then ``ARCHIVE_EXPORT_*``
    environment variables (including those from a ``.env`` file), then the
    defaults below.
    """

    DEFAULTS: Dict[str, Any] = {
        "compression_level": 6,
        "confirm_threshold": 5,
        "priority_delay_seconds": 0.3,
        "delivery_delay_seconds": 0.5,
        "include_info_file": False,
        "verify_stored_archive": True,
        "default_archive_name": "export.zip",
    }

    def __init__(self, settings_file: Optional[str] = None, env_file: Optional[str] = ".env", **overrides) -> None:
        """
        :param settings_file: Path to a JSON settings file. Missing or invalid
            files fall back to defaults.
        :param env_file: ``.env`` file to load before reading the environment.
        :param overrides: Explicit values that win over file and environment.
        """
        if env_file:
            _load_env_file(env_file)

        self.raw: Dict[str, Any] = {}
        if settings_file:
            self.raw = self._load_json(settings_file) or {}

        for key, default in self.DEFAULTS.items():
            value = overrides.get(key)
            if value is None:
                value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
            if value is None:
                value = self.raw.get(key)
            setattr(self, key, _coerce(value, default))

        self.compression_level = max(0, min(9, self.compression_level))
        self.confirm_threshold = max(0, self.confirm_threshold)
        self.priority_delay_seconds = max(0.0, self.priority_delay_seconds)
        self.delivery_delay_seconds = max(0.0, self.delivery_delay_seconds)

        if settings_file:
            logger.debug("Export settings loaded from '%s'.", settings_file)

    @classmethod
    def from_file(cls, settings_file: str = DEFAULT_SETTINGS_FILE) -> "ExportSettings":
        return cls(settings_file=settings_file)

    def _load_json(self, path: str) -> Optional[Dict[str, Any]]:
        """
        Loads JSON from the given file path.

        :param path: The path to the JSON file.
        :return: The parsed dictionary if valid, otherwise None.
        """
        if not os.path.isfile(path):
            logger.warning("Settings file '%s' not found, using defaults.", path)
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Error loading JSON file '%s': %s", path, e)
            return None

        if not isinstance(data, dict):
            logger.error("Settings file '%s' must contain a JSON object.", path)
            return None
        return data

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in self.DEFAULTS}

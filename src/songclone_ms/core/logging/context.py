"""
Request Context and Configuration State for Logging.

The request id lives in a contextvars.ContextVar so that every log line
emitted while a request's orchestration runs (including inside awaited
provider calls) carries the same id.

Environment Variables:
    - SONGCLONE_LOG_LEVEL: Override log level (1-4 or name)
    - SONGCLONE_LOG_DIR: Directory for the JSONL log file
    - SONGCLONE_JSONL_FILE: JSONL filename
    - SONGCLONE_LOG_ROTATE_BYTES: Max file size before rotation
    - SONGCLONE_LOG_ROTATE_BACKUP: Number of rotated files kept
    - SONGCLONE_SETTINGS: Settings file consulted for a logging section
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL
_preview_chars: int = 80


def get_request_id() -> str:
    """Get current request ID from context ("-" outside a request)."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Set request ID in context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """Current log level as a display name."""
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(cfg: Dict[str, Any], key: str, env_name: str) -> None:
    raw = os.getenv(env_name)
    if not raw:
        return
    try:
        cfg[key] = int(raw)
    except ValueError:
        pass  # ignore malformed override


def read_logging_config() -> Dict[str, Any]:
    """
    Read logging configuration from the settings file and environment.

    Priority (highest first): environment variables, the settings.yaml
    logging section, built-in defaults.

    Returns:
        Dictionary with resolved logging configuration.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("SONGCLONE_SETTINGS", "config/settings.yaml")
    try:
        from songclone_ms.core.config import load_settings
        settings = load_settings(settings_path, missing_ok=True)
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, ValueError, yaml.YAMLError):
        # unreadable or malformed settings: fall back to defaults
        pass

    if os.getenv("SONGCLONE_LOG_LEVEL"):
        cfg["level"] = os.environ["SONGCLONE_LOG_LEVEL"]
    if os.getenv("SONGCLONE_LOG_DIR"):
        cfg["log_dir"] = os.environ["SONGCLONE_LOG_DIR"]
    if os.getenv("SONGCLONE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SONGCLONE_JSONL_FILE"]
    _env_int(cfg, "rotate_max_bytes", "SONGCLONE_LOG_ROTATE_BYTES")
    _env_int(cfg, "rotate_backup_count", "SONGCLONE_LOG_ROTATE_BACKUP")

    return cfg


def get_preview_chars() -> int:
    return _preview_chars


def set_preview_chars(limit: int) -> None:
    """Set how many characters of a URL ``preview`` keeps (0 keeps all)."""
    global _preview_chars
    _preview_chars = int(limit)

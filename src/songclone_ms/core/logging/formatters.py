"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line, for the rotating log file.
    ColoredConsoleFormatter: human-readable terminal lines.

Output Examples:
    JSONL:
        {"ts":"2026-10-18T14:30:05+00:00","level":2,"tag":"INFO","message":"tier_attempt","request_id":"abc123","extra":{"tier":"trained"}}

    Console:
        14:30:05 [ INFO  ] (abc123) tier_attempt tier=trained
        14:30:41 [SUCCESS] (abc123) tier_result tier=zero-shot outcome=success 36.120s

Color Schemes:
    Timing (seconds): < 5s green, < 30s yellow, otherwise red. Provider
    calls are slow by nature, so the thresholds are far above an
    in-process service's.
    outcome=: success green, skipped dim, anything else red.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from .colors import Colors, get_tag_color


def _use_colors() -> bool:
    # Read at call time so tests can flip the flag on the package module.
    import songclone_ms.core.logging as log_module
    return getattr(log_module, "_USE_COLORS", False)


def _paint(text: str, color: str) -> str:
    if not _use_colors():
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """
    Format log records as JSON Lines for file output.

    Output Format:
        {
            "ts": ISO timestamp with timezone,
            "level": numeric level (1-4),
            "tag": "INFO" | "WARN" | "SUCCESS" | ...,
            "message": event name,
            "request_id": correlation id,
            "event": optional event type,
            "seconds": optional timing,
            "extra": optional structured fields
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).astimezone().isoformat()

        payload: Dict[str, Any] = {
            "ts": ts,
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records with ANSI colors for console output.

    Output Format:
        HH:MM:SS [ TAG   ] (rid) message key=value 1.234s
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            _paint(ts, Colors.DIM),
            _paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(_paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", Colors.BLUE))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_paint(f"{k}={v}", self._field_color(k, v)))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            parts.append(_paint(f"{seconds:.3f}s", self._timing_color(seconds)))

        return " ".join(parts)

    @staticmethod
    def _timing_color(seconds: float) -> str:
        if seconds < 5.0:
            return Colors.GREEN
        if seconds < 30.0:
            return Colors.YELLOW
        return Colors.RED

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        """
        Get color for a structured field.

        Tier outcomes and poll attempt counters are highlighted; every
        other field is dimmed.
        """
        if key == "outcome":
            if value == "success":
                return Colors.GREEN
            if value == "skipped":
                return Colors.DIM
            return Colors.RED

        if key in ("tier", "method"):
            return Colors.MAGENTA

        if key == "attempt" and isinstance(value, int):
            return Colors.CYAN if value <= 3 else Colors.YELLOW

        return Colors.DIM

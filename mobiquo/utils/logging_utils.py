"""Loguru helpers: sink setup with credential redaction."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from loguru import logger

REDACTED = "[REDACTED]"
_SENSITIVE_KEY_PARTS = ("password", "passwd", "pass", "secret", "token")
_SINK_IDS: list[int] = []


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in _SENSITIVE_KEY_PARTS)


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with password-like keys masked, recursively."""
    if isinstance(value, dict):
        return {k: REDACTED if _is_sensitive(str(k)) else redact(v) for k, v in value.items()}
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def _redacting_filter(record: dict[str, Any]) -> bool:
    extra = record["extra"]
    for key in list(extra):
        extra[key] = REDACTED if _is_sensitive(str(key)) else redact(extra[key])
    return True


def _format(record: dict[str, Any]) -> str:
    fmt = "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>"
    if record["extra"]:
        fmt += " <dim>{extra}</dim>"
    return fmt + "\n{exception}"


def configure_logging(level: str = "INFO", *, log_file: Path | None = None) -> Path | None:
    """Route mobiquo logs to stderr and, optionally, a rotating file."""
    for sink_id in _SINK_IDS:
        logger.remove(sink_id)
    _SINK_IDS.clear()

    _SINK_IDS.append(logger.add(sys.stderr, level=level, format=_format, filter=_redacting_filter))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _SINK_IDS.append(logger.add(
            str(log_file),
            level=level,
            format=_format,
            filter=_redacting_filter,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
            encoding="utf-8",
            backtrace=False,
            diagnose=False,
        ))
    logger.enable("mobiquo")
    return log_file

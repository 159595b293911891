"""Structured logging helpers for SDK consumers."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

import platformdirs

from BridgeSDK.settings import get_settings

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging", "default_log_dir"]

_SENSITIVE_KEYS = frozenset({"password", "sessiontoken", "session_token", "bridge-session"})
_MASK = "***"

# Attributes every LogRecord has; anything else arrived through ``extra=``.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def mask_sensitive_data(payload: Any) -> Any:
    """Return ``payload`` with credential-bearing values replaced by ``***``."""
    if isinstance(payload, dict):
        return {
            key: _MASK if str(key).lower() in _SENSITIVE_KEYS else mask_sensitive_data(value)
            for key, value in payload.items()
        }
    if isinstance(payload, (list, tuple)):
        return [mask_sensitive_data(item) for item in payload]
    return payload


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string including its ``extra`` fields."""

        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def default_log_dir() -> Path:
    env_value = os.environ.get("BRIDGE_LOG_DIR", "").strip()
    if env_value:
        return Path(env_value)
    return Path(platformdirs.user_log_dir("bridge-sdk"))


def setup_logging(
    *,
    level: Optional[str] = None,
    max_log_size_mb: int = 20,
    log_dir: Optional[Path] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure SDK logging: console output plus a rotating JSON-lines file.

    ``level`` defaults to the ``log_level`` setting (``BRIDGE_LOG_LEVEL``).
    """

    resolved_dir = log_dir or default_log_dir()
    resolved_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("BridgeSDK")
    resolved_level = level or get_settings().log_level
    logger.setLevel(getattr(logging, resolved_level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_bridge_managed", False):
            logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    stream_handler._bridge_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    file_handler = RotatingFileHandler(
        resolved_dir / f"bridge-sdk-{today}.jsonl",
        maxBytes=int(max_log_size_mb * 1024 * 1024),
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONFormatter())
    file_handler._bridge_managed = True  # type: ignore[attr-defined]
    logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger

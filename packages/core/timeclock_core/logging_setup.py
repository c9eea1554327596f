"""JSON log files for sync runs.

Every line written while a sync is in progress carries that run's ``sync_id``,
so one scheduler invocation can be pulled out of a day's rotated file with a
single filter. Fields passed through ``extra`` (``event``, ``count``, ...) are
copied into the JSON object as-is.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import logging.handlers
import os
import platform
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator


_LOGGER_NAME = "timeclock"
LOG_FILE_NAME = "timeclock-sync.log"

_current_sync_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("timeclock_sync_id", default=None)

# LogRecord attributes that are never copied into the JSON payload.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "sync_id"}


def _state_root() -> Path:
    if platform.system() == "Windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "TimeclockSync"
    if platform.system() == "Darwin":
        return Path.home() / "Library" / "Logs" / "TimeclockSync"
    return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "timeclock-sync"


def log_dir() -> Path:
    override = os.environ.get("TIMECLOCK_LOG_DIR", "").strip()
    path = Path(override).expanduser() if override else _state_root() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def new_sync_id() -> str:
    return uuid.uuid4().hex[:12]


def current_sync_id() -> str | None:
    return _current_sync_id.get()


@contextlib.contextmanager
def sync_context(sync_id: str) -> Iterator[str]:
    """Tag every record logged inside the block with ``sync_id``."""
    token = _current_sync_id.set(sync_id)
    try:
        yield sync_id
    finally:
        _current_sync_id.reset(token)


class SyncContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.sync_id = _current_sync_id.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        sync_id = getattr(record, "sync_id", None)
        if sync_id:
            payload["sync_id"] = sync_id
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(keep_files: int = 7, console: bool = True, debug: bool = False) -> logging.Logger:
    """Attach the rotating JSON file handler once; later calls only adjust the level."""
    logger = logging.getLogger(_LOGGER_NAME)
    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)
    if logger.handlers:
        return logger

    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir() / LOG_FILE_NAME),
        when="midnight",
        backupCount=max(2, keep_files),
        encoding="utf-8",
    )
    handler.addFilter(SyncContextFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.addFilter(SyncContextFilter())
        stream_handler.setFormatter(logging.Formatter("%(levelname)s %(name)s %(message)s"))
        logger.addHandler(stream_handler)

    logger.debug("logging configured", extra={"event": "logging_configured", "debug": debug})
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from .config import LogConfig

_HANDLER_MARKER = "_chat_dispatch_handler"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _coerce_field(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_coerce_field(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _coerce_field(item) for key, item in value.items()}
    return str(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    """Emit a single structured log line (`{"event": ..., **fields}`)."""

    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        payload[key] = _coerce_field(value)
    if exc is not None:
        payload["error"] = str(exc)
        payload["error_type"] = type(exc).__name__
    message = json.dumps(payload, ensure_ascii=False, sort_keys=False)
    if exc is not None and exc_info:
        logger.log(level, message, exc_info=(type(exc), exc, exc.__traceback__))
        return
    logger.log(level, message)


def setup_logging(config: LogConfig, *, stream: bool = True) -> logging.Logger:
    """Attach rotating-file (and optional stderr) handlers to the package logger.

    Calling this more than once replaces the handlers installed previously.
    """

    logger = logging.getLogger("chat_dispatch")
    logger.setLevel(config.level)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    config.path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        config.path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_MARKER, True)
    logger.addHandler(file_handler)

    if stream:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        setattr(stream_handler, _HANDLER_MARKER, True)
        logger.addHandler(stream_handler)
    return logger


__all__ = ["log_event", "setup_logging"]

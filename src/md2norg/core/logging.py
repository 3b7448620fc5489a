"""Logging helpers shared across md2norg modules."""

from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

__all__ = [
    "JsonLogFormatter",
    "configure_logger",
]


class JsonLogFormatter(logging.Formatter):
    """Emit log records as structured JSON lines."""

    _RESERVED = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: _coerce_value(value)
            for key, value in record.__dict__.items()
            if key not in self._RESERVED
        }
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=True)


def configure_logger(
    name: str,
    *,
    level: str = "INFO",
    log_file: Path | None = None,
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> tuple[logging.Logger, Path | None]:
    """Configure and return a namespaced logger.

    A JSON file handler is attached when ``log_file`` is given. The console
    handler on stderr reports warnings and errors, or everything when
    ``verbose`` is set. Repeated calls reuse the managed handlers.
    """

    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(logging.DEBUG)

    file_level = _coerce_level(level)
    if verbose:
        file_level = logging.DEBUG

    active_path: Path | None = None
    if log_file is not None:
        file_handler, active_path = _ensure_file_handler(
            logger=logger,
            path=_prepare_log_file(log_file),
            max_bytes=max_bytes,
            backup_count=backup_count,
        )
        file_handler.setLevel(file_level)
    else:
        _remove_file_handler(logger)

    _ensure_console_handler(
        logger, logging.DEBUG if verbose else logging.WARNING
    )

    return logger, active_path


def _coerce_level(level: str) -> int:
    name = level.upper()
    numeric = logging.getLevelName(name)
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


def _ensure_file_handler(
    *,
    logger: logging.Logger,
    path: Path,
    max_bytes: int,
    backup_count: int,
) -> tuple[RotatingFileHandler, Path]:
    managed: RotatingFileHandler | None = None
    for handler in logger.handlers:
        if getattr(handler, "_md2norg_file", False):
            managed = handler  # type: ignore[assignment]
            break
    if managed is not None and managed.baseFilename != os.path.abspath(path):
        logger.removeHandler(managed)
        managed.close()
        managed = None
    if managed is None:
        try:
            managed = RotatingFileHandler(
                path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            active_path = path
        except PermissionError:
            active_path = _prepare_log_file(_fallback_log_dir() / path.name)
            managed = RotatingFileHandler(
                active_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        managed.setFormatter(JsonLogFormatter())
        managed._md2norg_file = True  # type: ignore[attr-defined]
        logger.addHandler(managed)
    else:
        active_path = path
    return managed, Path(active_path)


def _remove_file_handler(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, "_md2norg_file", False):
            logger.removeHandler(handler)
            handler.close()


def _ensure_console_handler(logger: logging.Logger, level: int) -> None:
    for handler in logger.handlers:
        if getattr(handler, "_md2norg_console", False):
            handler.setLevel(level)
            return
    console = logging.StreamHandler(stream=sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    console._md2norg_console = True  # type: ignore[attr-defined]
    logger.addHandler(console)


def _coerce_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _coerce_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_coerce_value(item) for item in value]
    return repr(value)


def _prepare_log_file(path: Path) -> Path:
    path = path.expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=True)
    except PermissionError:
        fallback = _fallback_log_dir()
        fallback.mkdir(parents=True, exist_ok=True)
        path = fallback / path.name
        path.touch(exist_ok=True)
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path


def _fallback_log_dir() -> Path:
    return Path(tempfile.gettempdir()) / "md2norg-logs"

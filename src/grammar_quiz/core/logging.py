"""JSON-lines logging for the grammar_quiz package."""

from __future__ import annotations

import json
import logging
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

_FALLBACK_DIR = Path(tempfile.gettempdir()) / "grammar-quiz-logs"


class JsonLogFormatter(logging.Formatter):
    """Emit log records as one JSON object per line."""

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
        # Hangul explanations stay readable in the log file.
        return json.dumps(payload, ensure_ascii=False)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 3,
) -> tuple[logging.Logger, Path]:
    """Attach a rotating JSON file handler (and optional console) to ``name``.

    Calling this twice for the same logger reuses the existing handlers so
    repeated quiz runs in one process do not duplicate output.
    """

    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(logging.DEBUG)

    file_level = logging.DEBUG if verbose else _coerce_level(level)
    file_path = _prepare_log_file(log_dir, f"{name.rsplit('.', 1)[-1]}.log")

    handler = _find_handler(logger, "_grammar_quiz_file")
    if handler is None:
        handler = RotatingFileHandler(
            file_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(JsonLogFormatter())
        handler._grammar_quiz_file = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    else:
        file_path = Path(handler.baseFilename)  # type: ignore[attr-defined]
    handler.setLevel(file_level)

    console = _find_handler(logger, "_grammar_quiz_console")
    if verbose and console is None:
        console = logging.StreamHandler(stream=sys.stderr)
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        console._grammar_quiz_console = True  # type: ignore[attr-defined]
        logger.addHandler(console)
    elif not verbose and console is not None:
        logger.removeHandler(console)
        console.close()

    return logger, file_path


def _find_handler(logger: logging.Logger, marker: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            return handler
    return None


def _coerce_level(level: str) -> int:
    numeric = logging.getLevelName(level.upper())
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


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


def _prepare_log_file(log_dir: Path, filename: str) -> Path:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / filename
        path.touch(exist_ok=True)
    except PermissionError:
        _FALLBACK_DIR.mkdir(parents=True, exist_ok=True)
        path = _FALLBACK_DIR / filename
        path.touch(exist_ok=True)
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
JSON-lines logging for kernelstats.

A corpus run can take hours and juggles several downloads at once, so every
event is emitted as one self-contained JSON object per line. Besides the
fixed keys, records carry whatever the caller put in `extra` (URL, cache
path, release version, progress index) and the worker thread that produced
them, which keeps interleaved download output readable:

  {"ts": "2026-...", "level": "INFO", "module": "kernelstats.sources.download",
   "thread": "kernelstats-dl_0", "msg": "Downloading archive",
   "url": "https://...", "index": 3, "total": 40}

Loggers never propagate to the root logger. Create them with get_logger();
the CLI re-levels all of them at once with set_package_log_level(). The
configured log file is shared by every kernelstats logger, including those
created after it was attached (attach_package_log_file).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

PACKAGE_LOGGER_PREFIX = "kernelstats"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Shared file handlers, keyed by resolved path. Left at NOTSET; loggers filter.
_package_file_handlers: dict[Path, logging.FileHandler] = {}

# Attributes every LogRecord has; anything else on a record came from `extra`.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line: ts, level, module, thread, msg, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Paths, exceptions and other non-JSON values fall back to str().
        return json.dumps(payload, default=str)


def _level_number(level_name: str) -> int:
    name = level_name.upper()
    if name not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(LOG_LEVELS)}"
        )
    return logging.getLevelName(name)


def _is_package_logger(name: str) -> bool:
    return name == PACKAGE_LOGGER_PREFIX or name.startswith(f"{PACKAGE_LOGGER_PREFIX}.")


def _package_loggers() -> list[logging.Logger]:
    return [
        logging.getLogger(name)
        for name in list(logging.Logger.manager.loggerDict)
        if _is_package_logger(name)
    ]


def _apply_level(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    shared = _package_file_handlers.values()
    for handler in logger.handlers:
        if handler not in shared:
            handler.setLevel(level)


def get_logger(name: str, log_level: str = "INFO") -> logging.Logger:
    """
    Return the named logger, wired to stdout (and any attached package log file).

    Calling it again for the same name only changes the level; handlers are
    attached once.

    Raises:
        ValueError: log_level is not a known level name.
    """
    level = _level_number(log_level)
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.propagate = False
        if _is_package_logger(name):
            for shared in _package_file_handlers.values():
                logger.addHandler(shared)

    _apply_level(logger, level)
    return logger


def set_package_log_level(log_level: str) -> None:
    """
    Re-level every kernelstats logger created so far.

    Module loggers are created at import time with the default level; the CLI
    calls this once --log-level (or the config's log_level) is known.
    """
    level = _level_number(log_level)
    for logger in _package_loggers():
        _apply_level(logger, level)


def attach_package_log_file(log_file: Path) -> None:
    """
    Send every kernelstats logger to log_file as well as stdout.

    Loggers created later through get_logger pick the file up too. Attaching
    the same path twice is a no-op.

    Raises:
        OSError: The file or its directory can't be created.
    """
    path = log_file.resolve()
    handler = _package_file_handlers.get(path)
    if handler is None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(str(path), encoding="utf-8")
        handler.setFormatter(JsonFormatter())
        _package_file_handlers[path] = handler

    for logger in _package_loggers():
        if handler not in logger.handlers:
            logger.addHandler(handler)


def close_package_log_files() -> None:
    """Detach and close the shared log files."""
    handlers = list(_package_file_handlers.values())
    _package_file_handlers.clear()
    for logger in _package_loggers():
        for handler in handlers:
            logger.removeHandler(handler)
    for handler in handlers:
        handler.close()

"""Structured key=value logging for generation diagnostics.

Every event is one line: ``level``, ``ts`` and ``logger`` first, then the
caller's fields in call order. Set ``UNDERCROFT_LOG_JSON=1`` to get one JSON
object per line instead. Warnings and errors go to stderr so that commands
printing machine-readable output keep stdout clean at default verbosity.

Usage:
    from undercroft.logging_utils import get_logger
    log = get_logger("undercroft.pipeline").bind(seed=42, depth=3)
    log.info(event="floor_generated", kind="cavern")

None values are dropped; other non-numeric values are str()'d with spaces
replaced by underscores.
"""

from __future__ import annotations

import json
import os
import sys
import time
from typing import Any, Dict, Optional

LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}
CURRENT_LEVEL = LEVELS.get(os.getenv("UNDERCROFT_LOG_LEVEL", "info"), 20)
JSON_MODE = os.getenv("UNDERCROFT_LOG_JSON", "0") in ("1", "true", "TRUE", "yes", "on")


def set_level(name: str) -> None:
    global CURRENT_LEVEL
    if name not in LEVELS:
        raise ValueError(f"unknown log level {name!r}; expected one of {', '.join(LEVELS)}")
    CURRENT_LEVEL = LEVELS[name]


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return str(value).replace(" ", "_")


def _format(level: str, **fields) -> str:
    record = {"level": level, "ts": int(time.time())}
    record.update((k, v) for k, v in fields.items() if v is not None and k not in record)
    if JSON_MODE:
        return json.dumps(record, separators=(",", ":"), default=str)
    return " ".join(f"{k}={_text(v)}" for k, v in record.items())


class _Logger:
    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self.name = name
        self.context = dict(context or {})

    def bind(self, **fields) -> "_Logger":
        """A logger that adds ``fields`` to every event it emits."""
        return _Logger(self.name, {**self.context, **fields})

    def enabled(self, level: str) -> bool:
        return LEVELS[level] >= CURRENT_LEVEL

    def _log(self, level: str, fields: Dict[str, Any]) -> None:
        if not self.enabled(level):
            return
        merged = {"logger": self.name, **self.context, **fields}
        line = _format(level, **merged)
        print(line, file=sys.stderr if LEVELS[level] >= LEVELS["warn"] else sys.stdout)

    def debug(self, **fields):
        self._log("debug", fields)

    def info(self, **fields):
        self._log("info", fields)

    def warn(self, **fields):
        self._log("warn", fields)

    def error(self, **fields):
        self._log("error", fields)


_LOGGER_CACHE: Dict[str, _Logger] = {}


def get_logger(name: str) -> _Logger:
    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = _Logger(name)
    return _LOGGER_CACHE[name]


log = get_logger("undercroft")

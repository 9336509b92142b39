"""Levelled text logger and a raw monitoring sink."""

from __future__ import annotations

import contextlib
import threading
from datetime import datetime
from enum import IntEnum
from typing import IO, Any, Mapping

COLOR_RESET = "\033[0m"
COLOR_RED = "\033[31m"
COLOR_YELLOW = "\033[33m"
COLOR_CYAN = "\033[36m"


class LogLevel(IntEnum):
    CRITICAL = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


_PREFIXES = {
    LogLevel.CRITICAL: "[critical] ",
    LogLevel.ERROR: "[error] ",
    LogLevel.WARN: "[warn] ",
    LogLevel.INFO: "[info] ",
    LogLevel.DEBUG: "[debug] ",
    LogLevel.TRACE: "[trace] ",
}

_COLORS = {
    LogLevel.CRITICAL: COLOR_RED,
    LogLevel.ERROR: COLOR_YELLOW,
    LogLevel.TRACE: COLOR_CYAN,
}


def _format_fields(fields: Mapping[str, Any] | None) -> str:
    if not fields:
        return ""
    return "".join(f", {key}: {value}" for key, value in fields.items())


class SimpleLogger:
    """Writes timestamped lines for every level up to a maximum."""

    def __init__(self, out: IO[str], level: LogLevel = LogLevel.DEBUG) -> None:
        self._out = out
        self.level = LogLevel(level)
        self._lock = threading.Lock()

    def _log(self, level: LogLevel, msg: str, fields: Mapping[str, Any] | None) -> None:
        if level > self.level:
            return
        color = _COLORS.get(level, "")
        reset = COLOR_RESET if color else ""
        text = f"{color}{msg}{_format_fields(fields)}{reset}"
        stamp = datetime.now().strftime("%Y/%m/%d %H:%M:%S.%f")
        line = f"{_PREFIXES[level]}{stamp} {text}"
        if not line.endswith("\n"):
            line += "\n"
        with self._lock:
            self._out.write(line)

    def critical(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(LogLevel.CRITICAL, msg, fields)

    def error(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(LogLevel.ERROR, msg, fields)

    def warn(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(LogLevel.WARN, msg, fields)

    def info(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(LogLevel.INFO, msg, fields)

    def debug(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(LogLevel.DEBUG, msg, fields)

    def trace(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(LogLevel.TRACE, msg, fields)


class MonitorToWriter:
    """Passes monitoring payloads straight to a binary writer."""

    def __init__(self, writer: IO[bytes]) -> None:
        self._writer = writer

    def send_log(self, data: bytes) -> None:
        with contextlib.suppress(OSError):
            self._writer.write(data)
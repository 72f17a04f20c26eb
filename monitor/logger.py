"""
Logging setup with up to three outputs:
  - stderr: compact, ANSI-colored console lines
  - file (default on): verbose debug log at <log_dir>/agent_YYYYMMDD_HHMMSS.log
  - file (optional): single-line JSON (ndjson) for machine consumption
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone


_ANSI = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
}

# levelname -> (three-letter tag, ansi style)
_LEVELS = {
    "DEBUG": ("DBG", _ANSI["dim"]),
    "INFO": ("INF", _ANSI["cyan"]),
    "WARNING": ("WRN", _ANSI["yellow"]),
    "ERROR": ("ERR", _ANSI["red"]),
    "CRITICAL": ("CRT", _ANSI["red"] + _ANSI["bold"]),
}

# Execution-path tags get their own color so paper and live fills stand apart.
_MODE_TAGS = {
    "[PAPER]": _ANSI["green"],
    "[LIVE]": _ANSI["yellow"] + _ANSI["bold"],
}

_NOISY_LOGGERS = ("httpx", "httpcore", "py_clob_client", "urllib3")


def _paint(text: str, style: str) -> str:
    return f"{style}{text}{_ANSI['reset']}"


class ConsoleFormatter(logging.Formatter):
    """`HH:MM:SS TAG message`, colored when stderr is a terminal."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color and _supports_color()

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag, style = _LEVELS.get(record.levelname, (record.levelname[:3], ""))
        text = record.getMessage()
        error = record.exc_info[1] if record.exc_info else None

        if self.use_color:
            for mode_tag, mode_style in _MODE_TAGS.items():
                text = text.replace(mode_tag, _paint(mode_tag, mode_style))
            line = f"{_paint(clock, _ANSI['dim'])} {_paint(tag, style)} {text}"
            if error is not None:
                line += "\n" + _paint(f"     {error}", _ANSI["red"])
            return line

        line = f"{clock} {tag} {text}"
        if error is not None:
            line += f"\n     {error}"
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per line (ndjson), UTC timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            payload["exception"] = f"{type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return json.dumps(payload, separators=(",", ":"))


def setup_logging(
    level: str = "INFO",
    json_log_file: str | None = None,
    log_dir: str | None = "logs",
) -> str | None:
    """
    Configure the root logger. Console respects `level`; the verbose file
    always captures DEBUG. Pass log_dir=None to skip the file.

    Returns the verbose log path, or None when file logging is off.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.getLevelName(level.upper()) if level.upper() in _LEVELS else logging.INFO)
    console.setFormatter(ConsoleFormatter())
    handlers: list[logging.Handler] = [console]

    log_path = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, datetime.now(timezone.utc).strftime("agent_%Y%m%d_%H%M%S.log"))
        verbose = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        verbose.setLevel(logging.DEBUG)
        verbose.setFormatter(logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)-8s [%(threadName)s] %(name)s:%(lineno)d %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        handlers.append(verbose)

    if json_log_file:
        ndjson = logging.FileHandler(json_log_file, mode="a", encoding="utf-8")
        ndjson.setFormatter(JSONFormatter())
        handlers.append(ndjson)

    for handler in handlers:
        root.addHandler(handler)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_path


def _supports_color() -> bool:
    """NO_COLOR wins over FORCE_COLOR; otherwise color only on a tty."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return getattr(sys.stderr, "isatty", lambda: False)()

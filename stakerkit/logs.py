"""Structured logger for the RPC client."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

_LEVELS = {
    "debug": logging.DEBUG,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}

_STANDARD_ATTRS = set(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


def _timestamp(record: logging.LogRecord) -> str:
    moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _level(record: logging.LogRecord) -> str:
    return _LEVEL_NAMES.get(record.levelno, record.levelname.lower())


class _FieldFormatter(logging.Formatter):
    def fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        extra = {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}
        if record.exc_info:
            extra["stacktrace"] = self.formatException(record.exc_info)
        return extra


class _JSONFormatter(_FieldFormatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {"lvl": _level(record), "ts": _timestamp(record), "msg": record.getMessage()}
        entry.update(self.fields(record))
        return json.dumps(entry, default=str)


class _ConsoleFormatter(_FieldFormatter):
    def format(self, record: logging.LogRecord) -> str:
        parts = [_timestamp(record), _level(record), record.getMessage()]
        extra = self.fields(record)
        if extra:
            parts.append(json.dumps(extra, default=str))
        return "\t".join(parts)


def _logfmt_value(value: Any) -> str:
    text = str(value)
    if not text or any(c in text for c in ' ="\\') or not text.isprintable():
        return json.dumps(text)
    return text


class _LogfmtFormatter(_FieldFormatter):
    def format(self, record: logging.LogRecord) -> str:
        pairs = [
            ("ts", _timestamp(record)),
            ("lvl", _level(record)),
            ("msg", record.getMessage()),
        ]
        pairs.extend(self.fields(record).items())
        return " ".join(f"{key}={_logfmt_value(value)}" for key, value in pairs)


_FORMATTERS = {
    "json": _JSONFormatter,
    "auto": _ConsoleFormatter,
    "console": _ConsoleFormatter,
    "logfmt": _LogfmtFormatter,
}


def new_root_logger(format: str, log_level: str) -> logging.Logger:
    """Create a stderr logger in the given format (json, console, auto, logfmt).

    Unknown level names fall back to info.
    """
    formatter_type = _FORMATTERS.get(format)
    if formatter_type is None:
        raise ValueError(f"unrecognized log format {json.dumps(format)}")

    logger = logging.Logger("stakerkit.rpc", _LEVELS.get(log_level, logging.INFO))
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter_type())
    logger.addHandler(handler)
    return logger
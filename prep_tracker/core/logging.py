"""Logging configuration for prep-tracker.

TWO OUTPUT MODES
-----------------
  _ContainerFormatter: human-readable, single-line, for a terminal or a
    local dev session.

  _JsonFormatter: one JSON object per line, for log shipping.  Context
    fields stamped by prep_tracker.core.request_context (request_id,
    activity_id) and the per-call fields logged by the API client
    (method, path, status_code, duration_ms) become top-level keys, so a
    log UI can filter on ``activity_id == "..."`` to see one study action
    end to end: track -> badge check -> milestone diff.

    Set LOG_JSON=true to switch to JSON output.
"""

from __future__ import annotations

import json
import logging
import sys

from prep_tracker.core.request_context import RequestContextFilter


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter tuned for stdout.

    - Always: ISO-8601 timestamp, level, logger name, message
    - WARNING+: appends [filename:lineno] so you can find the failing branch
    - ERROR/CRITICAL: stack trace included when exc_info is present
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # Insert .NNN before the timezone offset (last 5 chars: +0000)
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            self._style._fmt = self._BASE_FMT + self._LOC_SUFFIX
        else:
            self._style._fmt = self._BASE_FMT
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter.

    Extra context fields appear as top-level keys when present on the
    record; absent (None) fields are left out.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "activity_id",
        "activity_type",
        "method",
        "path",
        "status_code",
        "duration_ms",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            # "-" is the contextvar default when no flow is active
            if value is not None and value != "-":
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger.

    Args:
        level_name: Log level string (debug/info/warning/error)
        json_format: If True, emit JSON lines. If False, human-readable.
                     Controlled by LOG_JSON env var in Settings.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # Keep the HTTP stack from flooding at DEBUG; our client logs its own summary
    for name in ("httpcore", "httpx", "asyncio"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

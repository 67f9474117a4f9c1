"""Correlation context for outbound API calls and log lines.

Two context variables carry IDs down the async call chain without being
passed through every function:

  request_id_var  - one per HTTP call.  Sent as X-Request-ID so a client
                    log line can be matched with the server's access log.
  activity_id_var - one per tracked study action.  Every call made while
                    recording that action (track, badge check, overview
                    refetch) shares it, so the whole flow can be pulled
                    out of the logs with one filter.

The httpx event hooks below are the client-side mirror of a request
middleware: they stamp the request ID, time the round-trip, log one
summary line and feed the API metrics.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

import httpx

from prep_tracker.core.metrics import API_REQUEST_COUNT, API_REQUEST_DURATION

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
activity_id_var: ContextVar[str] = ContextVar("activity_id", default="-")

_START_KEY = "prep_tracker.start"


class RequestContextFilter(logging.Filter):
    """Stamps the current request/activity IDs onto every LogRecord.

    Installed on the handler by setup_logging(), so records propagated
    from any module's logger pass through it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        if getattr(record, "activity_id", None) is None:
            record.activity_id = activity_id_var.get("-")  # type: ignore[attr-defined]
        return True


@contextmanager
def activity_scope(activity_id: str | None = None) -> Iterator[str]:
    """Bind a fresh activity ID for the duration of one study-action flow."""
    value = activity_id or str(uuid.uuid4())
    token = activity_id_var.set(value)
    try:
        yield value
    finally:
        activity_id_var.reset(token)


async def on_request(request: httpx.Request) -> None:
    """httpx request hook: assign an X-Request-ID and start the timer."""
    req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.headers["X-Request-ID"] = req_id
    request_id_var.set(req_id)
    request.extensions[_START_KEY] = time.monotonic()


async def on_response(response: httpx.Response) -> None:
    """httpx response hook: log a summary line and record metrics."""
    request = response.request
    start = request.extensions.get(_START_KEY)
    elapsed = time.monotonic() - start if start is not None else 0.0
    duration_ms = round(elapsed * 1000, 1)
    path = request.url.path

    API_REQUEST_COUNT.labels(
        method=request.method,
        endpoint=path,
        status_code=str(response.status_code),
    ).inc()
    API_REQUEST_DURATION.labels(method=request.method, endpoint=path).observe(elapsed)

    logger.info(
        "%s %s → %d (%.1fms)",
        request.method,
        path,
        response.status_code,
        duration_ms,
        extra={
            "request_id": request.headers.get("x-request-id"),
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )

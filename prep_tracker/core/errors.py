"""Error taxonomy for calls made against the study API.

  TrackerError
  ├── NetworkError         the request never reached the server
  ├── HTTPError            the server answered with a non-2xx status
  ├── ResponseFormatError  a 2xx body that is not JSON or not the expected shape
  └── ValidationError      malformed client input, caught before any request

None of these are retried automatically.  The next user action or the
next scheduled timer is the retry.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for every error raised by prep_tracker."""


class NetworkError(TrackerError):
    def __init__(self, method: str, path: str, cause: Exception) -> None:
        self.method = method
        self.path = path
        self.cause = cause
        super().__init__(f"{method} {path} failed: {cause}")


class HTTPError(TrackerError):
    """Non-2xx response.  ``body`` is the raw response text."""

    def __init__(self, status_code: int, body: str, *, method: str = "", path: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.method = method
        self.path = path
        super().__init__(f"{status_code}: {body}")


class ValidationError(TrackerError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ResponseFormatError(TrackerError):
    """A 2xx response whose body is not JSON or not the expected shape."""

    def __init__(
        self, message: str, *, path: str = "", body: str = "", status_code: int | None = None
    ) -> None:
        self.path = path
        self.body = body
        self.status_code = status_code
        super().__init__(message)

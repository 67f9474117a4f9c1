from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off", "")


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it's easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    api_base_url: str
    session_cookie: str | None
    redis_url: str | None
    request_timeout_seconds: float = 30.0
    query_stale_seconds: int = 30
    review_required_seconds: int = 180

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false")
    timeout_raw = _getenv("REQUEST_TIMEOUT_SECONDS", "30")
    stale_raw = _getenv("QUERY_STALE_SECONDS", "30")
    review_raw = _getenv("REVIEW_REQUIRED_SECONDS", "180")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    log_json = _parse_bool("LOG_JSON", log_json_raw)

    try:
        request_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"REQUEST_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if request_timeout <= 0:
        raise ValueError(
            f"REQUEST_TIMEOUT_SECONDS must be positive (got {timeout_raw!r})"
        )

    try:
        query_stale = int(stale_raw)
    except ValueError:
        raise ValueError(
            f"QUERY_STALE_SECONDS must be an integer (got {stale_raw!r})"
        ) from None
    if query_stale < 0:
        raise ValueError(f"QUERY_STALE_SECONDS must be >= 0 (got {stale_raw!r})")

    try:
        review_required = int(review_raw)
    except ValueError:
        raise ValueError(
            f"REVIEW_REQUIRED_SECONDS must be an integer (got {review_raw!r})"
        ) from None
    if review_required <= 0:
        raise ValueError(
            f"REVIEW_REQUIRED_SECONDS must be positive (got {review_raw!r})"
        )

    api_base_url = _getenv("API_BASE_URL", "http://localhost:5000").rstrip("/")
    session_cookie = _getenv("SESSION_COOKIE", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        api_base_url=api_base_url,
        session_cookie=session_cookie,
        redis_url=redis_url,
        request_timeout_seconds=request_timeout,
        query_stale_seconds=query_stale,
        review_required_seconds=review_required,
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()

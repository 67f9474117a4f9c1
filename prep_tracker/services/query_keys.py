"""Query cache keys.

A key is the API path a query reads from.  Parameterised queries append
path segments (``/api/analytics/category-stats/3``), so invalidating the
bare path as a prefix drops every variant at once.
"""

from __future__ import annotations

ANALYTICS_OVERVIEW = "/api/analytics/overview"
ANALYTICS_PROGRESS = "/api/analytics/progress"
ANALYTICS_OVERALL_PROGRESS = "/api/analytics/overall-progress"
CATEGORY_STATS = "/api/analytics/category-stats"
PROGRESS = "/api/progress"
EXAMS = "/api/exams"
USER_PROFILE = "/api/auth/user"
STUDY_STREAK = "/api/study-sessions/streak"
BATTLE_HISTORY = "/api/battle/history"
DAILY_PROGRESS_TODAY = "/api/daily-progress/today"
DAILY_STREAK = "/api/daily-progress/streak"

# Everything a tracked study activity can change on the server.
AFTER_TRACK_ACTIVITY: tuple[str, ...] = (
    ANALYTICS_OVERVIEW,
    ANALYTICS_PROGRESS,
    CATEGORY_STATS,
    PROGRESS,
    EXAMS,
    USER_PROFILE,
    STUDY_STREAK,
    BATTLE_HISTORY,
)

AFTER_BADGE_CHECK: tuple[str, ...] = (USER_PROFILE,)

AFTER_STREAK_VALIDATION: tuple[str, ...] = (STUDY_STREAK,)

AFTER_DAILY_PROGRESS: tuple[str, ...] = (
    DAILY_PROGRESS_TODAY,
    DAILY_STREAK,
    USER_PROFILE,
    STUDY_STREAK,
    ANALYTICS_OVERVIEW,
)

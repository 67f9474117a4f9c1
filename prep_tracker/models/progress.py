"""Read models for server-computed progress, streak and daily state.

The client never derives percentages or streak counts itself; these
models only parse what the server reports.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, Field, computed_field, field_validator

from prep_tracker.models.base import CamelModel

# Ordered low → high; the notifier relies on this ordering.
MILESTONE_THRESHOLDS: tuple[int, ...] = (10, 25, 50, 75, 90, 100)


class ProgressSnapshot(CamelModel):
    overall_progress: float = Field(default=0, ge=0, le=100)
    total_study_time: int = 0
    questions_answered: int = 0
    correct_answers: int = 0
    battle_wins: int = 0
    battle_losses: int = 0

    @classmethod
    def from_overview(cls, body: Any) -> ProgressSnapshot:
        """Parse GET /api/analytics/overview.

        The server nests the counters under ``overview`` next to the
        per-category and per-subtopic breakdowns; a flat body is accepted too.
        """
        inner = body.get("overview") if isinstance(body, Mapping) else None
        return cls.from_response(
            inner if isinstance(inner, Mapping) else body, path="/api/analytics/overview"
        )


class OverallProgress(CamelModel):
    overall_progress: float = Field(default=0, ge=0, le=100)
    total_questions: int = 0
    completed_questions: int = 0
    practice_completed: int = 0
    quiz_completed: int = 0
    exam_completed: int = 0


def _to_date(value: Any) -> Any:
    # Server sends either a YYYY-MM-DD date or a full ISO timestamp
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


class StreakState(CamelModel):
    current_streak: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("currentStreak", "studyStreak", "current_streak"),
    )
    longest_streak: int | None = None
    last_active_date: datetime.date | None = None

    @field_validator("last_active_date", mode="before")
    @classmethod
    def _normalize_last_active(cls, value: Any) -> Any:
        return _to_date(value)


class StreakValidation(CamelModel):
    study_streak: int = Field(default=0, ge=0)
    needs_reset: bool = False


class DailyProgress(CamelModel):
    date: datetime.date | None = None
    quiz_completed: bool = False
    review_time_completed: bool = False
    practice_completed: bool = False
    quiz_completed_at: str | None = None
    review_completed_at: str | None = None
    practice_completed_at: str | None = None
    completed_at: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_completed(self) -> bool:
        return self.quiz_completed and self.review_time_completed and self.practice_completed

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        return _to_date(value)

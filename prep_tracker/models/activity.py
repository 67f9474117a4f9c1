"""Wire models for study activity and its tracking results."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import ConfigDict, Field, field_serializer
from pydantic import ValidationError as PydanticValidationError

from prep_tracker.core.errors import ValidationError
from prep_tracker.models.base import CamelModel


class ActivityType(StrEnum):
    REVIEW = "review"
    PRACTICE = "practice"
    QUIZ = "quiz"
    MOCK_EXAM = "mock_exam"


class QuestionResult(CamelModel):
    question_id: int
    is_correct: bool


class ActivityRecord(CamelModel):
    """One completed study action, sent once to track-activity."""

    activity_type: ActivityType
    subtopic_ids: frozenset[int] | None = None
    category_id: int | None = None
    score: float | None = None
    questions_answered: int | None = None  # <= 0 means nothing to track
    correct_answers: int | None = Field(default=None, ge=0)
    time_spent: int | None = Field(default=None, ge=0)  # seconds
    is_passed: bool | None = None
    question_results: tuple[QuestionResult, ...] | None = None

    @field_serializer("subtopic_ids")
    def _serialize_subtopic_ids(self, value: frozenset[int] | None) -> list[int] | None:
        return sorted(value) if value is not None else None

    def to_payload(self) -> dict[str, Any]:
        """Request body: camelCase keys, unset fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @property
    def should_track(self) -> bool:
        return self.questions_answered is not None and self.questions_answered > 0


class TrackResult(CamelModel):
    model_config = ConfigDict(extra="allow")

    new_badges: list[str] = Field(default_factory=list)


class BadgeCheckResult(CamelModel):
    new_badges: list[str] = Field(default_factory=list)
    total_badges: list[str] = Field(default_factory=list)


def parse_activity(data: ActivityRecord | Mapping[str, Any]) -> ActivityRecord:
    """Coerce caller input into an ActivityRecord.

    Raises prep_tracker ValidationError (not pydantic's) so callers only
    deal with one error taxonomy.
    """
    if isinstance(data, ActivityRecord):
        return data
    try:
        return ActivityRecord.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(
            f"invalid activity record: {field}: {first['msg']}", field=field
        ) from exc

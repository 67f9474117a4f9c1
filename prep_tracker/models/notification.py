from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class NotificationKind(StrEnum):
    MILESTONE = "milestone"
    ACHIEVEMENT = "achievement"
    BADGE = "badge"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notification:
    """A non-blocking, user-facing toast.

    duration is how long the UI should keep it on screen, in seconds.
    """

    kind: NotificationKind
    title: str
    description: str
    duration: float = 5.0
    milestone: int | None = None
    badges: tuple[str, ...] = ()

    @staticmethod
    def milestone_reached(threshold: int) -> Notification:
        return Notification(
            kind=NotificationKind.MILESTONE,
            title="🎯 Milestone Achieved!",
            description=f"You've reached {threshold}% overall progress!",
            duration=6.0,
            milestone=threshold,
        )

    @staticmethod
    def achievement(message: str) -> Notification:
        return Notification(
            kind=NotificationKind.ACHIEVEMENT,
            title=f"🏆 {message}",
            description="Check your updated progress!",
            duration=4.0,
        )

    @staticmethod
    def badges_earned(badges: list[str] | tuple[str, ...]) -> Notification:
        return Notification(
            kind=NotificationKind.BADGE,
            title="New Badge Earned! 🎉",
            description=f"You earned: {', '.join(badges)}",
            duration=5.0,
            badges=tuple(badges),
        )

    @staticmethod
    def failure(title: str, error: Exception) -> Notification:
        return Notification(
            kind=NotificationKind.ERROR,
            title=title,
            description=str(error),
            duration=5.0,
        )

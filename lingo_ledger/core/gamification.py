"""
Gamification: XP, levels, daily streaks, achievements and per-language
progress.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Tuple

from ..storage.models import LanguageProgress, UnlockedAchievement, UserProfile
from ..storage.repository import AnalyticsRepository
from .curriculum import Language, get_lesson, get_lessons_by_language, list_languages

logger = logging.getLogger(__name__)

STREAK_BONUS_THRESHOLD = 7
STREAK_BONUS_XP = 50


@dataclass(frozen=True)
class Achievement:
    """A milestone and the XP it is worth.

    `kind` selects which profile counter is compared against
    `requirement`: "lesson", "streak" or "xp".
    """
    id: str
    name: str
    description: str
    kind: str
    requirement: int
    xp_reward: int

    def __post_init__(self):
        if self.kind not in ("lesson", "streak", "xp"):
            raise ValueError(f"Unknown achievement kind: {self.kind}")
        if self.requirement <= 0:
            raise ValueError("requirement must be positive")
        if self.xp_reward < 0:
            raise ValueError("xp_reward cannot be negative")

    def is_met(self, profile: UserProfile) -> bool:
        if self.kind == "lesson":
            return profile.lessons_completed >= self.requirement
        if self.kind == "streak":
            return profile.streak >= self.requirement
        return profile.xp >= self.requirement


ACHIEVEMENTS: Tuple[Achievement, ...] = (
    Achievement(
        id="first-steps",
        name="First Steps",
        description="Complete your first lesson",
        kind="lesson",
        requirement=1,
        xp_reward=50
    ),
    Achievement(
        id="streak-master",
        name="Streak Master",
        description="Maintain a 7-day learning streak",
        kind="streak",
        requirement=7,
        xp_reward=100
    ),
    Achievement(
        id="xp-collector",
        name="XP Collector",
        description="Earn 1000 XP",
        kind="xp",
        requirement=1000,
        xp_reward=100
    ),
)


@dataclass(frozen=True)
class LessonOutcome:
    """Profile after a completed lesson plus anything it unlocked."""
    profile: UserProfile
    unlocked: List[UnlockedAchievement]


@dataclass(frozen=True)
class LanguageWithProgress:
    """A catalog language annotated with one learner's progress in it."""
    language: Language
    progress: int
    lessons_completed: int
    is_started: bool


@dataclass(frozen=True)
class UserStats:
    user_id: str
    xp: int
    level: int
    streak: int
    lessons_completed: int
    last_active_on: Optional[date]
    achievements: List[UnlockedAchievement]


class GamificationService:
    """Keeps learner profiles and awards achievements."""

    def __init__(
        self,
        repository: AnalyticsRepository,
        achievements: Iterable[Achievement] = ACHIEVEMENTS
    ):
        self.repository = repository
        self.achievements = tuple(achievements)

    def get_profile(self, user_id: str) -> UserProfile:
        """Stored profile, or a fresh one for a user never seen before."""
        profile = self.repository.get_user_profile(user_id)
        return profile if profile is not None else UserProfile(user_id=user_id)

    def add_xp(self, user_id: str, amount: int, source: str = "manual") -> UserProfile:
        """Award XP.

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError("XP amount cannot be negative")
        profile = self.get_profile(user_id)
        updated = self.repository.save_user_profile(replace(profile, xp=profile.xp + amount))
        logger.debug("Awarded %d XP to %s (%s)", amount, user_id, source)
        return updated

    def record_activity(self, user_id: str, on: Optional[date] = None) -> UserProfile:
        """Advance the daily streak.

        Activity on the same day changes nothing, the next day extends
        the streak and any longer gap restarts it at 1. Every active day
        at or beyond the bonus threshold earns bonus XP.
        """
        today = on or datetime.now(timezone.utc).date()
        profile = self.get_profile(user_id)
        last = profile.last_active_on

        if last is not None and last >= today:
            return profile

        if last is not None and (today - last).days == 1:
            streak = profile.streak + 1
        else:
            streak = 1

        xp = profile.xp
        if streak >= STREAK_BONUS_THRESHOLD:
            xp += STREAK_BONUS_XP
            logger.debug("Streak bonus for %s at %d days", user_id, streak)

        return self.repository.save_user_profile(
            replace(profile, streak=streak, last_active_on=today, xp=xp)
        )

    def award_activity_xp(
        self, user_id: str, amount: int, source: str, on: Optional[date] = None
    ) -> List[UnlockedAchievement]:
        """Credit XP earned by a learning action.

        Counts as activity for the streak and may unlock achievements.

        Returns:
            Achievements unlocked as a result
        """
        self.add_xp(user_id, amount, source=source)
        self.record_activity(user_id, on=on)
        return self.check_achievements(user_id)

    def complete_lesson(
        self,
        user_id: str,
        xp_reward: int = 0,
        on: Optional[date] = None,
        language_id: Optional[str] = None,
        level: Optional[str] = None
    ) -> LessonOutcome:
        """Count a finished lesson, award its XP and check achievements.

        With a language id the learner's progress in that language moves
        forward as well.
        """
        if xp_reward < 0:
            raise ValueError("xp_reward cannot be negative")
        profile = self.record_activity(user_id, on=on)
        self.repository.save_user_profile(replace(
            profile,
            lessons_completed=profile.lessons_completed + 1,
            xp=profile.xp + xp_reward
        ))
        if language_id is not None:
            self._advance_language(user_id, language_id, level)
        unlocked = self.check_achievements(user_id)
        return LessonOutcome(profile=self.get_profile(user_id), unlocked=unlocked)

    def finish_lesson(self, user_id: str, lesson_id: str, on: Optional[date] = None) -> LessonOutcome:
        """Complete a catalog lesson, paying its XP reward.

        Raises:
            LessonNotFoundError: If the lesson id is unknown
        """
        lesson = get_lesson(lesson_id)
        return self.complete_lesson(
            user_id,
            xp_reward=lesson.xp_reward,
            on=on,
            language_id=lesson.language_id,
            level=lesson.level
        )

    def get_language_progress(self, user_id: str, language_id: str) -> LanguageProgress:
        progress = self.repository.get_language_progress(user_id, language_id)
        if progress is None:
            return LanguageProgress(user_id=user_id, language_id=language_id)
        return progress

    def get_languages_with_progress(self, user_id: str) -> List[LanguageWithProgress]:
        """Every active language with the learner's progress in it."""
        started = {
            progress.language_id: progress
            for progress in self.repository.fetch_language_progress(user_id)
        }
        result = []
        for language in list_languages():
            progress = started.get(language.id)
            result.append(LanguageWithProgress(
                language=language,
                progress=progress.progress if progress else 0,
                lessons_completed=progress.lessons_completed if progress else 0,
                is_started=progress is not None
            ))
        return result

    def _advance_language(
        self, user_id: str, language_id: str, level: Optional[str]
    ) -> LanguageProgress:
        current = self.get_language_progress(user_id, language_id)
        completed = current.lessons_completed + 1
        total = len(get_lessons_by_language(language_id))
        percent = min(100, completed * 100 // total) if total else 0
        return self.repository.save_language_progress(replace(
            current,
            level=level or current.level,
            progress=percent,
            lessons_completed=completed,
            last_activity=datetime.now(timezone.utc)
        ))

    def check_achievements(self, user_id: str) -> List[UnlockedAchievement]:
        """Unlock newly met achievements and award their XP.

        Each achievement is unlocked and paid out at most once per user.

        Returns:
            Achievements unlocked by this call
        """
        profile = self.get_profile(user_id)
        unlocked = []
        for achievement in self.achievements:
            if not achievement.is_met(profile):
                continue
            entry = UnlockedAchievement(
                user_id=user_id,
                achievement_id=achievement.id,
                unlocked_at=datetime.now(timezone.utc)
            )
            if not self.repository.insert_unlocked_achievement(entry):
                continue
            profile = replace(profile, xp=profile.xp + achievement.xp_reward)
            unlocked.append(entry)
            logger.info("%s unlocked %s", user_id, achievement.id)

        if unlocked:
            self.repository.save_user_profile(profile)
        return unlocked

    def get_user_stats(self, user_id: str) -> UserStats:
        profile = self.get_profile(user_id)
        return UserStats(
            user_id=user_id,
            xp=profile.xp,
            level=profile.level,
            streak=profile.streak,
            lessons_completed=profile.lessons_completed,
            last_active_on=profile.last_active_on,
            achievements=self.repository.fetch_unlocked_achievements(user_id)
        )

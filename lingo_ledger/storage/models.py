"""
Data models for storage layer.

Defines the usage, feedback and engagement records and the
gamification and language progress kept per user.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class FeedbackSignal(Enum):
    """Thumbs up / down / neither."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class FeedbackReason(Enum):
    """Why a response was rated negatively."""
    ACCURACY = "accuracy"
    TONE = "tone"
    LATENCY = "latency"
    COMPLEXITY = "complexity"
    OTHER = "other"


class FeedbackTouchpoint(Enum):
    """Where in the app the feedback was given."""
    TRANSLATION = "translation"
    TRANSLATION_WITH_ANALYSIS = "translation-with-analysis"
    CONTENT_GENERATION = "content-generation"
    REVEAL_ANSWER = "reveal-answer"
    WORD_ANALYSIS = "word-analysis"
    CHECK_ANSWER = "check-answer"
    CHECK_ANSWER_DETAILED = "check-answer-detailed"
    LESSON_CHECK_ANSWER = "lesson-check-answer"
    OTHER = "other"


_ALL_REASONS = tuple(FeedbackReason)

# Reasons the app offers per touchpoint when a response is rated negatively
FEEDBACK_REASON_PRESETS: Dict[FeedbackTouchpoint, Tuple[FeedbackReason, ...]] = {
    FeedbackTouchpoint.TRANSLATION: (
        FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.LATENCY, FeedbackReason.OTHER
    ),
    FeedbackTouchpoint.TRANSLATION_WITH_ANALYSIS: (
        FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.COMPLEXITY,
        FeedbackReason.LATENCY, FeedbackReason.OTHER
    ),
    FeedbackTouchpoint.CONTENT_GENERATION: (
        FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.COMPLEXITY, FeedbackReason.OTHER
    ),
    FeedbackTouchpoint.REVEAL_ANSWER: (
        FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.LATENCY, FeedbackReason.OTHER
    ),
    FeedbackTouchpoint.WORD_ANALYSIS: (
        FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.COMPLEXITY, FeedbackReason.OTHER
    ),
    FeedbackTouchpoint.CHECK_ANSWER: (
        FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.LATENCY, FeedbackReason.OTHER
    ),
    FeedbackTouchpoint.CHECK_ANSWER_DETAILED: (
        FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.COMPLEXITY, FeedbackReason.OTHER
    ),
    FeedbackTouchpoint.LESSON_CHECK_ANSWER: (
        FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.COMPLEXITY, FeedbackReason.OTHER
    ),
    FeedbackTouchpoint.OTHER: _ALL_REASONS,
}


def reasons_for(touchpoint: FeedbackTouchpoint) -> Tuple[FeedbackReason, ...]:
    """Reasons a user can pick for negative feedback at a touchpoint."""
    return FEEDBACK_REASON_PRESETS.get(touchpoint, _ALL_REASONS)


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of one billed AI call.

    Append-only: once written, a usage record is never modified.
    """
    id: str
    timestamp: datetime
    user_id: str
    provider: str
    model_id: str
    operation: str
    feature: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    input_cost: float
    output_cost: float
    total_cost: float
    currency: str
    session_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    duration_ms: Optional[float] = None

    def __post_init__(self):
        """Validate token and cost values are non-negative."""
        for name in ("input_tokens", "output_tokens", "total_tokens"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        for name in ("input_cost", "output_cost", "total_cost"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def language_id(self) -> Optional[str]:
        """Language the call was made for, if the caller said."""
        value = self.metadata.get("languageId")
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class FeedbackContext:
    """Snapshot of what the user was looking at when giving feedback."""
    source_text: Optional[str] = None
    source_lang: Optional[str] = None
    target_lang: Optional[str] = None
    translation_text: Optional[str] = None
    transliteration: Optional[str] = None
    language_code: Optional[str] = None
    # Free-form extras supplied by the screen the feedback came from
    feature_meta: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class FeedbackRecord:
    """User rating of a single AI response.

    Updated in place by id; a new rating on the same response replaces
    the old one rather than adding another record.
    """
    id: str
    usage_record_id: str
    user_id: str
    provider: str
    model_id: str
    operation: str
    feature: str
    touchpoint: FeedbackTouchpoint
    signal: FeedbackSignal
    created_at: datetime
    session_id: Optional[str] = None
    language_id: Optional[str] = None
    reason: Optional[FeedbackReason] = None
    comment: Optional[str] = None
    xp_delta: Optional[int] = None
    context: Optional[FeedbackContext] = None
    functionality: Optional[str] = None
    learning_mode: Optional[str] = None
    learning_level: Optional[str] = None


@dataclass(frozen=True)
class EngagementEvent:
    """A discrete user action, optionally worth some XP."""
    id: str
    user_id: str
    provider: str
    model_id: str
    operation: str
    feature: str
    action: str
    timestamp: datetime
    session_id: Optional[str] = None
    language_id: Optional[str] = None
    xp_delta: Optional[int] = None
    functionality: Optional[str] = None
    learning_mode: Optional[str] = None
    learning_level: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    """Gamification state of a learner."""
    user_id: str
    xp: int = 0
    streak: int = 0
    lessons_completed: int = 0
    last_active_on: Optional[date] = None

    def __post_init__(self):
        """Validate counters are non-negative."""
        if self.xp < 0:
            raise ValueError("xp cannot be negative")
        if self.streak < 0:
            raise ValueError("streak cannot be negative")
        if self.lessons_completed < 0:
            raise ValueError("lessons_completed cannot be negative")

    @property
    def level(self) -> int:
        """One level per 1000 XP, starting at 1."""
        return self.xp // 1000 + 1


@dataclass(frozen=True)
class UnlockedAchievement:
    """An achievement a user has earned."""
    user_id: str
    achievement_id: str
    unlocked_at: datetime


@dataclass(frozen=True)
class LanguageProgress:
    """How far a learner has got in one language."""
    user_id: str
    language_id: str
    level: str = "basic"
    progress: int = 0  # percent of the language's lessons completed
    lessons_completed: int = 0
    last_activity: Optional[datetime] = None

    def __post_init__(self):
        if not 0 <= self.progress <= 100:
            raise ValueError("progress must be between 0 and 100")
        if self.lessons_completed < 0:
            raise ValueError("lessons_completed cannot be negative")

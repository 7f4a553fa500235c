"""
Aggregations behind the admin dashboards.

Pure functions over already-filtered records. Nothing here touches a
store, so aggregating can never change what is stored.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ..storage.filters import apply_limit, as_utc
from ..storage.models import EngagementEvent, FeedbackRecord, FeedbackSignal, UsageRecord

# Gaps longer than this between two actions are idle time
DEFAULT_IDLE_CUTOFF_SECONDS = 90.0


@dataclass(frozen=True)
class DailyUsageSummary:
    """Token and cost totals for one user and model on one day."""
    date: str
    user_id: str
    provider: str
    model_id: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    input_cost: float
    output_cost: float
    total_cost: float
    currency: str


@dataclass(frozen=True)
class FeedbackSummaryBucket:
    """Signal counts for one day/user/language/model/feature slice."""
    date: str
    user_id: str
    model_id: str
    feature: str
    language_id: Optional[str]
    functionality: Optional[str]
    learning_mode: Optional[str]
    learning_level: Optional[str]
    total: int
    positive: int
    negative: int
    neutral: int


@dataclass(frozen=True)
class EngagementSummaryBucket:
    """Activity and XP rates for one day/user/language/model/feature slice."""
    date: str
    user_id: str
    model_id: str
    feature: str
    language_id: Optional[str]
    functionality: Optional[str]
    learning_mode: Optional[str]
    learning_level: Optional[str]
    action_count: int
    xp_total: int
    active_minutes: float
    actions_per_active_minute: float
    xp_per_active_minute: float


def _day(timestamp: datetime) -> str:
    return as_utc(timestamp).date().isoformat()


def summarize_daily_usage(
    records: Iterable[UsageRecord],
    limit: Optional[int] = None
) -> List[DailyUsageSummary]:
    """Sum tokens and cost per (date, user, provider, model).

    Args:
        records: Usage records to aggregate
        limit: Keep at most this many rows

    Returns:
        Summaries, most recent date first
    """
    groups: Dict[Tuple[str, str, str, str], Dict] = {}
    for record in records:
        key = (_day(record.timestamp), record.user_id, record.provider, record.model_id)
        if key not in groups:
            groups[key] = {
                "input_tokens": 0,
                "output_tokens": 0,
                "total_tokens": 0,
                "input_cost": 0.0,
                "output_cost": 0.0,
                "total_cost": 0.0,
                "currency": record.currency,
            }
        totals = groups[key]
        totals["input_tokens"] += record.input_tokens
        totals["output_tokens"] += record.output_tokens
        totals["total_tokens"] += record.total_tokens
        totals["input_cost"] += record.input_cost
        totals["output_cost"] += record.output_cost
        totals["total_cost"] += record.total_cost

    summaries = [
        DailyUsageSummary(
            date=day,
            user_id=user_id,
            provider=provider,
            model_id=model_id,
            **totals
        )
        for (day, user_id, provider, model_id), totals in groups.items()
    ]
    summaries.sort(key=lambda summary: summary.date, reverse=True)
    return apply_limit(summaries, limit)


def summarize_feedback(
    records: Iterable[FeedbackRecord],
    limit: Optional[int] = None
) -> List[FeedbackSummaryBucket]:
    """Count feedback signals per day/user/language/model/feature/learning context.

    Args:
        records: Feedback records to aggregate
        limit: Keep at most this many buckets

    Returns:
        Buckets, most recent date first, then busiest first
    """
    groups: Dict[Tuple, Dict[str, int]] = {}
    for record in records:
        key = (
            _day(record.created_at),
            record.user_id,
            record.language_id,
            record.model_id,
            record.feature,
            record.functionality,
            record.learning_mode,
            record.learning_level,
        )
        if key not in groups:
            groups[key] = {"total": 0, "positive": 0, "negative": 0, "neutral": 0}
        counts = groups[key]
        counts["total"] += 1
        if record.signal == FeedbackSignal.POSITIVE:
            counts["positive"] += 1
        elif record.signal == FeedbackSignal.NEGATIVE:
            counts["negative"] += 1
        else:
            counts["neutral"] += 1

    buckets = [
        FeedbackSummaryBucket(
            date=day,
            user_id=user_id,
            language_id=language_id,
            model_id=model_id,
            feature=feature,
            functionality=functionality,
            learning_mode=learning_mode,
            learning_level=learning_level,
            **counts
        )
        for (day, user_id, language_id, model_id, feature,
             functionality, learning_mode, learning_level), counts in groups.items()
    ]
    buckets.sort(key=lambda bucket: (bucket.date, bucket.total), reverse=True)
    return apply_limit(buckets, limit)


def active_seconds(
    timestamps: Iterable[datetime],
    idle_cutoff_seconds: float = DEFAULT_IDLE_CUTOFF_SECONDS
) -> float:
    """Time spent between consecutive actions, ignoring idle gaps.

    A gap counts when it is at most `idle_cutoff_seconds`; longer gaps
    mean the learner walked away and contribute nothing.
    """
    ordered = sorted(as_utc(stamp) for stamp in timestamps)
    total = 0.0
    for previous, current in zip(ordered, ordered[1:]):
        gap = (current - previous).total_seconds()
        if gap <= idle_cutoff_seconds:
            total += gap
    return total


def summarize_engagement(
    events: Iterable[EngagementEvent],
    limit: Optional[int] = None,
    idle_cutoff_seconds: float = DEFAULT_IDLE_CUTOFF_SECONDS
) -> List[EngagementSummaryBucket]:
    """Derive active minutes and per-minute rates per engagement bucket.

    Rates fall back to the raw count / XP when there is no active time
    (e.g. a single action), so they are never NaN or infinite.

    Args:
        events: Engagement events to aggregate
        limit: Keep at most this many buckets
        idle_cutoff_seconds: Longest gap still counted as active time

    Returns:
        Buckets, most recent date first, then most actions first
    """
    groups: Dict[Tuple, List[EngagementEvent]] = {}
    for event in events:
        key = (
            event.user_id,
            _day(event.timestamp),
            event.language_id,
            event.model_id,
            event.feature,
            event.functionality,
            event.learning_mode,
            event.learning_level,
        )
        groups.setdefault(key, []).append(event)

    buckets = []
    for (user_id, day, language_id, model_id, feature,
         functionality, learning_mode, learning_level), group in groups.items():
        action_count = len(group)
        xp_total = sum(event.xp_delta or 0 for event in group)
        active_minutes = active_seconds(
            (event.timestamp for event in group), idle_cutoff_seconds
        ) / 60

        if active_minutes > 0:
            actions_per_minute = action_count / active_minutes
            xp_per_minute = xp_total / active_minutes
        else:
            actions_per_minute = float(action_count)
            xp_per_minute = float(xp_total)

        buckets.append(EngagementSummaryBucket(
            date=day,
            user_id=user_id,
            language_id=language_id,
            model_id=model_id,
            feature=feature,
            functionality=functionality,
            learning_mode=learning_mode,
            learning_level=learning_level,
            action_count=action_count,
            xp_total=xp_total,
            active_minutes=active_minutes,
            actions_per_active_minute=actions_per_minute,
            xp_per_active_minute=xp_per_minute
        ))

    buckets.sort(key=lambda bucket: (bucket.date, bucket.action_count), reverse=True)
    return apply_limit(buckets, limit)

"""
Analytics service.

Facade the HTTP layer talks to: feedback and engagement ingest plus
the usage, feedback and engagement queries behind the admin pages.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from ..storage.filters import EngagementFilters, FeedbackFilters, UsageFilters
from ..storage.models import (
    EngagementEvent,
    FeedbackContext,
    FeedbackReason,
    FeedbackRecord,
    FeedbackSignal,
    FeedbackTouchpoint,
    UsageRecord,
    reasons_for,
)
from ..storage.repository import AnalyticsRepository, RecordNotFoundError
from .aggregation import (
    DEFAULT_IDLE_CUTOFF_SECONDS,
    DailyUsageSummary,
    EngagementSummaryBucket,
    FeedbackSummaryBucket,
    summarize_daily_usage,
    summarize_engagement,
    summarize_feedback,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMMENT_LENGTH = 500


def _metadata_str(metadata: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = metadata.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _context_from_metadata(
    metadata: Dict[str, Any], feature_meta: Optional[Dict[str, Any]] = None
) -> Optional[FeedbackContext]:
    context = FeedbackContext(
        source_text=_metadata_str(metadata, "sourceText", "text"),
        source_lang=_metadata_str(metadata, "sourceLang"),
        target_lang=_metadata_str(metadata, "targetLang"),
        translation_text=_metadata_str(metadata, "translationText", "translation"),
        transliteration=_metadata_str(metadata, "transliteration"),
        language_code=_metadata_str(metadata, "languageCode"),
        feature_meta=dict(feature_meta) if feature_meta else None
    )
    if context == FeedbackContext():
        return None
    return context


class AnalyticsService:
    """Ingest and query API over an analytics repository."""

    def __init__(
        self,
        repository: AnalyticsRepository,
        idle_cutoff_seconds: float = DEFAULT_IDLE_CUTOFF_SECONDS,
        max_comment_length: int = DEFAULT_MAX_COMMENT_LENGTH
    ):
        self.repository = repository
        self.idle_cutoff_seconds = idle_cutoff_seconds
        self.max_comment_length = max_comment_length

    def record_feedback(
        self,
        usage_record_id: str,
        signal: Union[FeedbackSignal, str],
        touchpoint: Union[FeedbackTouchpoint, str] = FeedbackTouchpoint.OTHER,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        language_id: Optional[str] = None,
        feature: Optional[str] = None,
        operation: Optional[str] = None,
        reason: Union[FeedbackReason, str, None] = None,
        comment: Optional[str] = None,
        xp_delta: Optional[int] = None,
        feature_meta: Optional[Dict[str, Any]] = None
    ) -> FeedbackRecord:
        """Store the first rating of an AI response.

        Provider and model always come from the rated usage record;
        learning context and a text snapshot are copied from its
        metadata. A reason is only kept for negative ratings and must be
        one the touchpoint offers.

        Raises:
            RecordNotFoundError: If the usage record does not exist
            ValueError: If the comment is too long, an enum value is unknown
                or the reason is not offered at the touchpoint
        """
        usage = self.repository.get_usage_record(usage_record_id)
        if usage is None:
            raise RecordNotFoundError(f"Usage record {usage_record_id} not found")

        signal = FeedbackSignal(signal)
        touchpoint = FeedbackTouchpoint(touchpoint)
        self._check_comment(comment)

        record = FeedbackRecord(
            id=str(uuid.uuid4()),
            usage_record_id=usage.id,
            user_id=user_id or usage.user_id,
            session_id=session_id or usage.session_id,
            provider=usage.provider,
            model_id=usage.model_id,
            language_id=language_id or usage.language_id,
            operation=operation or usage.operation,
            feature=feature or usage.feature,
            touchpoint=touchpoint,
            signal=signal,
            reason=self._reason_for(signal, reason, touchpoint),
            comment=comment,
            xp_delta=xp_delta,
            created_at=datetime.now(timezone.utc),
            context=_context_from_metadata(usage.metadata, feature_meta),
            functionality=_metadata_str(usage.metadata, "functionality"),
            learning_mode=_metadata_str(usage.metadata, "learningMode"),
            learning_level=_metadata_str(usage.metadata, "learningLevel", "level")
        )
        self.repository.insert_feedback(record)
        logger.debug("Recorded %s feedback on usage %s", signal.value, usage.id)
        return record

    def update_feedback(self, feedback_id: str, **changes: Any) -> FeedbackRecord:
        """Overwrite signal, reason, comment, xp_delta or touchpoint in place.

        The record keeps its id; no new record is created.

        Raises:
            RecordNotFoundError: If the feedback record does not exist
            ValueError: If a field cannot be updated or a value is invalid
        """
        existing = self.repository.get_feedback(feedback_id)
        if existing is None:
            raise RecordNotFoundError(f"Feedback {feedback_id} not found")

        if "signal" in changes:
            changes["signal"] = FeedbackSignal(changes["signal"])
        if "touchpoint" in changes:
            changes["touchpoint"] = FeedbackTouchpoint(changes["touchpoint"])
        if "comment" in changes:
            self._check_comment(changes["comment"])

        signal = changes.get("signal", existing.signal)
        touchpoint = changes.get("touchpoint", existing.touchpoint)
        reason = changes["reason"] if "reason" in changes else existing.reason
        if {"reason", "signal", "touchpoint"} & set(changes):
            changes["reason"] = self._reason_for(signal, reason, touchpoint)

        updated = self.repository.update_feedback(feedback_id, changes)
        if updated is None:
            raise RecordNotFoundError(f"Feedback {feedback_id} not found")
        return updated

    def record_engagement_event(
        self,
        user_id: str,
        action: str,
        provider: str,
        model_id: str,
        operation: str,
        feature: str,
        session_id: Optional[str] = None,
        language_id: Optional[str] = None,
        xp_delta: Optional[int] = None,
        functionality: Optional[str] = None,
        learning_mode: Optional[str] = None,
        learning_level: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> EngagementEvent:
        """Log a user action that did not go through a model call."""
        event = EngagementEvent(
            id=str(uuid.uuid4()),
            user_id=user_id,
            session_id=session_id,
            provider=provider,
            model_id=model_id,
            language_id=language_id,
            operation=operation,
            feature=feature,
            action=action,
            xp_delta=xp_delta,
            functionality=functionality,
            learning_mode=learning_mode,
            learning_level=learning_level,
            timestamp=timestamp or datetime.now(timezone.utc)
        )
        return self.repository.insert_engagement_event(event)

    def list_usage(self, filters: Optional[UsageFilters] = None) -> List[UsageRecord]:
        filters = filters or UsageFilters()
        return self.repository.fetch_usage_records(filters, limit=filters.limit)

    def daily_usage_summary(self, filters: Optional[UsageFilters] = None) -> List[DailyUsageSummary]:
        filters = filters or UsageFilters()
        records = self.repository.fetch_usage_records(filters)
        return summarize_daily_usage(records, limit=filters.limit)

    def list_feedback(self, filters: Optional[FeedbackFilters] = None) -> List[FeedbackRecord]:
        filters = filters or FeedbackFilters()
        return self.repository.fetch_feedback(filters, limit=filters.limit)

    def feedback_summary(
        self, filters: Optional[FeedbackFilters] = None
    ) -> List[FeedbackSummaryBucket]:
        filters = filters or FeedbackFilters()
        records = self.repository.fetch_feedback(filters)
        return summarize_feedback(records, limit=filters.limit)

    def list_engagement_events(
        self, filters: Optional[EngagementFilters] = None
    ) -> List[EngagementEvent]:
        filters = filters or EngagementFilters()
        return self.repository.fetch_engagement_events(filters, limit=filters.limit)

    def engagement_summary(
        self, filters: Optional[EngagementFilters] = None
    ) -> List[EngagementSummaryBucket]:
        filters = filters or EngagementFilters()
        events = self.repository.fetch_engagement_events(filters)
        return summarize_engagement(
            events, limit=filters.limit, idle_cutoff_seconds=self.idle_cutoff_seconds
        )

    def _check_comment(self, comment: Optional[str]) -> None:
        if comment is not None and len(comment) > self.max_comment_length:
            raise ValueError(f"comment cannot exceed {self.max_comment_length} characters")

    @staticmethod
    def _reason_for(
        signal: FeedbackSignal,
        reason: Union[FeedbackReason, str, None],
        touchpoint: FeedbackTouchpoint
    ) -> Optional[FeedbackReason]:
        if reason is None:
            return None
        reason = FeedbackReason(reason)
        if signal != FeedbackSignal.NEGATIVE:
            return None
        if reason not in reasons_for(touchpoint):
            raise ValueError(
                f"Reason '{reason.value}' is not offered for {touchpoint.value} feedback"
            )
        return reason

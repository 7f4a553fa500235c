"""
Record factories shared by the test modules.
"""

from datetime import datetime, timezone

from lingo_ledger.storage.models import (
    EngagementEvent,
    FeedbackContext,
    FeedbackReason,
    FeedbackRecord,
    FeedbackSignal,
    FeedbackTouchpoint,
    UsageRecord,
)

BASE_TIME = datetime(2024, 7, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_usage(record_id="usage-1", timestamp=BASE_TIME, **overrides) -> UsageRecord:
    values = dict(
        id=record_id,
        timestamp=timestamp,
        user_id="user-1",
        session_id="session-1",
        provider="google",
        model_id="gemini-2.5-flash",
        operation="translate_text",
        feature="translation",
        input_tokens=1000,
        output_tokens=500,
        total_tokens=1500,
        input_cost=0.00035,
        output_cost=0.000525,
        total_cost=0.000875,
        currency="USD",
        metadata={"languageId": "kannada", "sourceText": "Hello"},
        duration_ms=120.5
    )
    values.update(overrides)
    return UsageRecord(**values)


def make_feedback(feedback_id="feedback-1", usage_record_id="usage-1",
                  created_at=BASE_TIME, **overrides) -> FeedbackRecord:
    values = dict(
        id=feedback_id,
        usage_record_id=usage_record_id,
        user_id="user-1",
        provider="google",
        model_id="gemini-2.5-flash",
        operation="translate_text",
        feature="translation",
        touchpoint=FeedbackTouchpoint.TRANSLATION,
        signal=FeedbackSignal.NEGATIVE,
        reason=FeedbackReason.ACCURACY,
        comment="Wrong word",
        created_at=created_at,
        language_id="kannada",
        context=FeedbackContext(source_text="Hello", translation_text="ನಮಸ್ಕಾರ"),
        functionality="translation",
        learning_mode="practice",
        learning_level="basic"
    )
    values.update(overrides)
    return FeedbackRecord(**values)


def make_event(event_id="event-1", timestamp=BASE_TIME, **overrides) -> EngagementEvent:
    values = dict(
        id=event_id,
        user_id="user-1",
        provider="google",
        model_id="gemini-2.5-flash",
        operation="check_answer",
        feature="check-answer",
        action="answer_checked",
        timestamp=timestamp,
        language_id="kannada",
        xp_delta=10,
        learning_mode="practice"
    )
    values.update(overrides)
    return EngagementEvent(**values)

"""
Unit tests for the analytics service.

Tests feedback ingest and updates, engagement logging and the query
facade over both list and summary views.
"""

from datetime import timedelta

import pytest

from lingo_ledger.core.service import AnalyticsService
from lingo_ledger.storage.filters import EngagementFilters, FeedbackFilters, UsageFilters
from lingo_ledger.storage.models import (
    FEEDBACK_REASON_PRESETS,
    FeedbackReason,
    FeedbackSignal,
    FeedbackTouchpoint,
    reasons_for,
)
from lingo_ledger.storage.repository import MemoryRepository, RecordNotFoundError

from tests.factories import BASE_TIME, make_usage


class TestFeedbackIngest:
    """Test recording and updating feedback."""

    def setup_method(self):
        """Set up test environment."""
        self.repository = MemoryRepository()
        self.service = AnalyticsService(self.repository, max_comment_length=20)
        self.repository.insert_usage_record(make_usage(metadata={
            "languageId": "kannada",
            "languageCode": "kn",
            "sourceText": "Hello",
            "sourceLang": "English",
            "targetLang": "Kannada",
            "translationText": "ನಮಸ್ಕಾರ",
            "functionality": "translation",
            "learningMode": "practice",
            "learningLevel": "basic",
        }))

    def test_unknown_usage_record(self):
        """Verify feedback on a missing usage record is a not-found error."""
        with pytest.raises(RecordNotFoundError):
            self.service.record_feedback("missing", "positive")

    def test_provider_and_model_come_from_usage(self):
        record = self.service.record_feedback("usage-1", "positive", touchpoint="translation")

        assert record.usage_record_id == "usage-1"
        assert record.provider == "google"
        assert record.model_id == "gemini-2.5-flash"
        assert record.operation == "translate_text"
        assert record.feature == "translation"
        assert record.user_id == "user-1"
        assert record.language_id == "kannada"
        assert record.touchpoint == FeedbackTouchpoint.TRANSLATION
        assert record.signal == FeedbackSignal.POSITIVE

    def test_context_snapshot_from_metadata(self):
        record = self.service.record_feedback("usage-1", FeedbackSignal.NEUTRAL)

        assert record.context.source_text == "Hello"
        assert record.context.translation_text == "ನಮಸ್ಕಾರ"
        assert record.context.source_lang == "English"
        assert record.context.language_code == "kn"
        assert record.functionality == "translation"
        assert record.learning_mode == "practice"
        assert record.learning_level == "basic"

    def test_no_context_without_metadata(self):
        self.repository.insert_usage_record(make_usage("bare", metadata={}))
        record = self.service.record_feedback("bare", "positive")
        assert record.context is None

    def test_explicit_fields_override_usage(self):
        record = self.service.record_feedback(
            "usage-1", "positive", user_id="user-9", language_id="hindi", feature="lesson"
        )
        assert record.user_id == "user-9"
        assert record.language_id == "hindi"
        assert record.feature == "lesson"

    def test_reason_kept_only_when_negative(self):
        negative = self.service.record_feedback("usage-1", "negative", reason="accuracy")
        positive = self.service.record_feedback("usage-1", "positive", reason="accuracy")

        assert negative.reason == FeedbackReason.ACCURACY
        assert positive.reason is None

    def test_invalid_signal(self):
        with pytest.raises(ValueError):
            self.service.record_feedback("usage-1", "meh")

    def test_comment_too_long(self):
        with pytest.raises(ValueError, match="comment cannot exceed 20 characters"):
            self.service.record_feedback("usage-1", "negative", comment="x" * 21)

    def test_update_round_trip(self):
        """Verify an update keeps the id and lists the new signal."""
        record = self.service.record_feedback("usage-1", "negative", reason="tone")

        self.service.update_feedback(record.id, signal="positive")

        listed = self.service.list_feedback(FeedbackFilters())
        assert len(listed) == 1
        assert listed[0].id == record.id
        assert listed[0].signal == FeedbackSignal.POSITIVE
        assert listed[0].reason is None

    def test_update_reason_on_negative(self):
        record = self.service.record_feedback("usage-1", "negative")
        updated = self.service.update_feedback(record.id, reason="latency", comment="slow")

        assert updated.reason == FeedbackReason.LATENCY
        assert updated.comment == "slow"

    def test_update_missing_feedback(self):
        with pytest.raises(RecordNotFoundError):
            self.service.update_feedback("missing", signal="positive")

    def test_update_rejects_immutable_field(self):
        record = self.service.record_feedback("usage-1", "positive")
        with pytest.raises(ValueError):
            self.service.update_feedback(record.id, model_id="gemini-2.5-pro")

    def test_unknown_reason_rejected_for_any_signal(self):
        """Verify a bogus reason is an error even when it would be dropped."""
        with pytest.raises(ValueError):
            self.service.record_feedback("usage-1", "positive", reason="bogus")
        with pytest.raises(ValueError):
            self.service.record_feedback("usage-1", "neutral", reason="bogus")
        assert self.service.list_feedback() == []

    def test_reason_must_be_offered_at_touchpoint(self):
        with pytest.raises(ValueError, match="not offered for content-generation feedback"):
            self.service.record_feedback(
                "usage-1", "negative", touchpoint="content-generation", reason="latency"
            )

        record = self.service.record_feedback(
            "usage-1", "negative", touchpoint="translation", reason="latency"
        )
        assert record.reason == FeedbackReason.LATENCY

    def test_other_touchpoint_offers_every_reason(self):
        for reason in FeedbackReason:
            record = self.service.record_feedback("usage-1", "negative", reason=reason)
            assert record.reason == reason

    def test_update_touchpoint_rechecks_reason(self):
        record = self.service.record_feedback(
            "usage-1", "negative", touchpoint="translation", reason="latency"
        )
        with pytest.raises(ValueError, match="not offered"):
            self.service.update_feedback(record.id, touchpoint="word-analysis")

    def test_feature_meta_kept_in_context(self):
        record = self.service.record_feedback(
            "usage-1", "positive", feature_meta={"cardIndex": 3, "variant": "formal"}
        )

        assert record.context.feature_meta == {"cardIndex": 3, "variant": "formal"}
        assert record.context.source_text == "Hello"

    def test_feature_meta_alone_makes_context(self):
        self.repository.insert_usage_record(make_usage("bare", metadata={}))
        record = self.service.record_feedback("bare", "positive", feature_meta={"screen": "hub"})
        assert record.context.feature_meta == {"screen": "hub"}


class TestReasonPresets:
    """Test the per-touchpoint reason lists."""

    def test_presets_cover_every_touchpoint(self):
        assert set(FEEDBACK_REASON_PRESETS) == set(FeedbackTouchpoint)

    def test_reasons_for(self):
        assert reasons_for(FeedbackTouchpoint.TRANSLATION) == (
            FeedbackReason.ACCURACY, FeedbackReason.TONE, FeedbackReason.LATENCY, FeedbackReason.OTHER
        )
        assert FeedbackReason.LATENCY not in reasons_for(FeedbackTouchpoint.CONTENT_GENERATION)
        assert set(reasons_for(FeedbackTouchpoint.OTHER)) == set(FeedbackReason)


class TestQueries:
    """Test list and summary views."""

    def setup_method(self):
        """Set up test environment."""
        self.repository = MemoryRepository()
        self.service = AnalyticsService(self.repository)

    def test_list_usage_limit(self):
        for i in range(5):
            self.repository.insert_usage_record(
                make_usage(f"u-{i}", timestamp=BASE_TIME + timedelta(minutes=i))
            )

        records = self.service.list_usage(UsageFilters(limit=2))
        assert [r.id for r in records] == ["u-4", "u-3"]
        assert len(self.service.list_usage()) == 5

    def test_daily_summary_limits_rows_not_records(self):
        """Verify the limit applies to summary rows, after aggregation."""
        for day in range(3):
            for i in range(2):
                self.repository.insert_usage_record(make_usage(
                    f"u-{day}-{i}", timestamp=BASE_TIME + timedelta(days=day, minutes=i)
                ))

        summaries = self.service.daily_usage_summary(UsageFilters(limit=2))
        assert [s.date for s in summaries] == ["2024-07-03", "2024-07-02"]
        assert all(s.total_tokens == 3000 for s in summaries)

    def test_feedback_summary(self):
        self.repository.insert_usage_record(make_usage())
        self.service.record_feedback("usage-1", "positive")
        self.service.record_feedback("usage-1", "negative")

        buckets = self.service.feedback_summary(FeedbackFilters(user_id="user-1"))
        assert len(buckets) == 1
        assert buckets[0].total == 2
        assert buckets[0].positive == 1
        assert buckets[0].negative == 1

    def test_engagement_event_and_summary(self):
        """Verify the configured idle cutoff is applied."""
        service = AnalyticsService(self.repository, idle_cutoff_seconds=30)
        for seconds in (0, 20, 80):
            service.record_engagement_event(
                user_id="user-1",
                action="lesson_step",
                provider="google",
                model_id="gemini-2.5-flash",
                operation="lesson",
                feature="lesson",
                xp_delta=5,
                timestamp=BASE_TIME + timedelta(seconds=seconds)
            )

        events = service.list_engagement_events(EngagementFilters(action="lesson_step"))
        assert len(events) == 3

        buckets = service.engagement_summary()
        assert len(buckets) == 1
        assert buckets[0].active_minutes == pytest.approx(20 / 60)
        assert buckets[0].xp_total == 15

    def test_engagement_event_defaults_timestamp(self):
        event = self.service.record_engagement_event(
            user_id="user-1",
            action="opened_lesson",
            provider="google",
            model_id="gemini-2.5-flash",
            operation="lesson",
            feature="lesson"
        )
        assert event.timestamp.tzinfo is not None
        assert event.id

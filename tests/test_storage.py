"""
Unit tests for storage layer.

Tests schema creation, record insertion, filtering, ordering and the
feedback update contract on both repository backends.
"""

import os
import shutil
import tempfile
from datetime import date, datetime, timedelta

import pytest

from lingo_ledger.storage.db import get_connection
from lingo_ledger.storage.filters import EngagementFilters, FeedbackFilters, UsageFilters
from lingo_ledger.storage.models import (
    FeedbackContext,
    FeedbackSignal,
    FeedbackTouchpoint,
    LanguageProgress,
    UnlockedAchievement,
    UserProfile,
)
from lingo_ledger.storage.repository import (
    MemoryRepository,
    RecordNotFoundError,
    SQLiteRepository,
    get_repository,
    initialize_schema,
)
from tests.factories import BASE_TIME, make_event, make_feedback, make_usage


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify every table is created."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
                tables = {row[0] for row in cursor.fetchall()}
            finally:
                conn.close()

            assert {
                "usage_record",
                "feedback_record",
                "engagement_event",
                "ai_settings",
                "user_profile",
                "unlocked_achievement",
                "language_progress",
            } <= tables

    def test_schema_creation_is_idempotent(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            initialize_schema(db_path)

    def test_get_repository_follows_path(self):
        """Verify the singleton is replaced when the path changes."""
        with tempfile.TemporaryDirectory() as temp_dir:
            first = get_repository(os.path.join(temp_dir, "a.db"))
            assert get_repository(os.path.join(temp_dir, "a.db")) is first

            second = get_repository(os.path.join(temp_dir, "b.db"))
            assert second is not first
            assert second.db_path == os.path.join(temp_dir, "b.db")


class TestRecordValidation:
    """Test record invariants."""

    def test_negative_tokens_rejected(self):
        with pytest.raises(ValueError, match="input_tokens cannot be negative"):
            make_usage(input_tokens=-1)

    def test_negative_cost_rejected(self):
        with pytest.raises(ValueError, match="total_cost cannot be negative"):
            make_usage(total_cost=-0.5)

    def test_language_id_from_metadata(self):
        assert make_usage().language_id == "kannada"
        assert make_usage(metadata={}).language_id is None

    def test_level_from_xp(self):
        assert UserProfile(user_id="u").level == 1
        assert UserProfile(user_id="u", xp=999).level == 1
        assert UserProfile(user_id="u", xp=1000).level == 2
        assert UserProfile(user_id="u", xp=2500).level == 3

    def test_language_progress_bounds(self):
        with pytest.raises(ValueError, match="progress must be between 0 and 100"):
            LanguageProgress("user-1", "lang-kannada", progress=101)
        with pytest.raises(ValueError, match="lessons_completed cannot be negative"):
            LanguageProgress("user-1", "lang-kannada", lessons_completed=-1)


class _RepositoryContract:
    """Behavior every repository backend must share."""

    def make_repository(self):
        raise NotImplementedError

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.repository = self.make_repository()

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_usage_round_trip(self):
        """Verify a usage record reads back unchanged."""
        record = make_usage()
        self.repository.insert_usage_record(record)

        stored = self.repository.get_usage_record("usage-1")
        assert stored == record
        assert stored.timestamp.tzinfo is not None

    def test_get_missing_usage_record(self):
        assert self.repository.get_usage_record("missing") is None

    def test_usage_newest_first(self):
        for i in range(3):
            self.repository.insert_usage_record(
                make_usage(f"usage-{i}", timestamp=BASE_TIME + timedelta(minutes=i))
            )

        records = self.repository.fetch_usage_records(UsageFilters())
        assert [r.id for r in records] == ["usage-2", "usage-1", "usage-0"]

    def test_usage_same_timestamp_newest_inserted_first(self):
        self.repository.insert_usage_record(make_usage("first"))
        self.repository.insert_usage_record(make_usage("second"))

        records = self.repository.fetch_usage_records(UsageFilters())
        assert [r.id for r in records] == ["second", "first"]

    def test_usage_filters_are_conjunctive(self):
        self.repository.insert_usage_record(make_usage("a"))
        self.repository.insert_usage_record(make_usage("b", user_id="user-2"))
        self.repository.insert_usage_record(make_usage("c", model_id="gemini-2.5-pro"))
        self.repository.insert_usage_record(
            make_usage("d", metadata={"languageId": "hindi"})
        )

        records = self.repository.fetch_usage_records(
            UsageFilters(user_id="user-1", model_id="gemini-2.5-flash", language_id="kannada")
        )
        assert [r.id for r in records] == ["a"]

    def test_usage_time_bounds_inclusive(self):
        for i in range(5):
            self.repository.insert_usage_record(
                make_usage(f"usage-{i}", timestamp=BASE_TIME + timedelta(hours=i))
            )

        records = self.repository.fetch_usage_records(UsageFilters(
            start="2024-07-01T13:00:00Z",
            end=BASE_TIME + timedelta(hours=3)
        ))
        assert [r.id for r in records] == ["usage-3", "usage-2", "usage-1"]

    def test_malformed_bound_is_ignored(self):
        """Verify an unparseable bound means no bound."""
        self.repository.insert_usage_record(make_usage())

        records = self.repository.fetch_usage_records(UsageFilters(start="not-a-date"))
        assert len(records) == 1

    def test_usage_limit(self):
        for i in range(5):
            self.repository.insert_usage_record(
                make_usage(f"usage-{i}", timestamp=BASE_TIME + timedelta(minutes=i))
            )

        records = self.repository.fetch_usage_records(UsageFilters(), limit=2)
        assert [r.id for r in records] == ["usage-4", "usage-3"]

    def test_feedback_requires_usage_record(self):
        """Verify feedback cannot reference a missing usage record."""
        with pytest.raises(RecordNotFoundError):
            self.repository.insert_feedback(make_feedback(usage_record_id="missing"))

    def test_feedback_round_trip(self):
        self.repository.insert_usage_record(make_usage())
        record = make_feedback()
        self.repository.insert_feedback(record)

        assert self.repository.get_feedback("feedback-1") == record

    def test_update_feedback_in_place(self):
        """Verify an update keeps the id and replaces the fields."""
        self.repository.insert_usage_record(make_usage())
        self.repository.insert_feedback(make_feedback())

        updated = self.repository.update_feedback(
            "feedback-1", {"signal": FeedbackSignal.POSITIVE, "reason": None, "comment": "Great"}
        )
        assert updated.id == "feedback-1"
        assert updated.signal == FeedbackSignal.POSITIVE
        assert updated.reason is None

        records = self.repository.fetch_feedback(FeedbackFilters())
        assert len(records) == 1
        assert records[0].id == "feedback-1"
        assert records[0].signal == FeedbackSignal.POSITIVE
        assert records[0].comment == "Great"

    def test_update_missing_feedback_returns_none(self):
        assert self.repository.update_feedback("missing", {"comment": "x"}) is None

    def test_update_immutable_field_rejected(self):
        self.repository.insert_usage_record(make_usage())
        self.repository.insert_feedback(make_feedback())

        with pytest.raises(ValueError, match="cannot be updated"):
            self.repository.update_feedback("feedback-1", {"model_id": "gemini-2.5-pro"})

    def test_feedback_filters(self):
        self.repository.insert_usage_record(make_usage())
        self.repository.insert_feedback(make_feedback("f-1"))
        self.repository.insert_feedback(make_feedback(
            "f-2", signal=FeedbackSignal.POSITIVE, reason=None,
            created_at=BASE_TIME + timedelta(minutes=1)
        ))
        self.repository.insert_feedback(make_feedback(
            "f-3", touchpoint=FeedbackTouchpoint.CHECK_ANSWER,
            created_at=BASE_TIME + timedelta(minutes=2)
        ))

        negative = self.repository.fetch_feedback(FeedbackFilters(signal="negative"))
        assert [r.id for r in negative] == ["f-3", "f-1"]

        by_enum = self.repository.fetch_feedback(
            FeedbackFilters(touchpoint=FeedbackTouchpoint.CHECK_ANSWER)
        )
        assert [r.id for r in by_enum] == ["f-3"]

        by_level = self.repository.fetch_feedback(FeedbackFilters(learning_level="basic"))
        assert len(by_level) == 3

    def test_engagement_filters(self):
        self.repository.insert_engagement_event(make_event("e-1"))
        self.repository.insert_engagement_event(make_event(
            "e-2", action="translation_requested", timestamp=BASE_TIME + timedelta(seconds=30)
        ))

        events = self.repository.fetch_engagement_events(EngagementFilters())
        assert [e.id for e in events] == ["e-2", "e-1"]

        checked = self.repository.fetch_engagement_events(EngagementFilters(action="answer_checked"))
        assert [e.id for e in checked] == ["e-1"]
        assert checked[0] == make_event("e-1")

    def test_active_model_id(self):
        assert self.repository.get_active_model_id() is None
        self.repository.set_active_model_id("gemini-2.5-pro")
        self.repository.set_active_model_id("gemini-2.5-flash")
        assert self.repository.get_active_model_id() == "gemini-2.5-flash"

    def test_user_profile_round_trip(self):
        assert self.repository.get_user_profile("user-1") is None

        profile = UserProfile(
            user_id="user-1", xp=120, streak=3, lessons_completed=2,
            last_active_on=date(2024, 7, 1)
        )
        self.repository.save_user_profile(profile)
        assert self.repository.get_user_profile("user-1") == profile

    def test_unlocked_achievement_once(self):
        unlocked = UnlockedAchievement("user-1", "first-steps", BASE_TIME)
        assert self.repository.insert_unlocked_achievement(unlocked) is True
        assert self.repository.insert_unlocked_achievement(unlocked) is False

        stored = self.repository.fetch_unlocked_achievements("user-1")
        assert [a.achievement_id for a in stored] == ["first-steps"]
        assert self.repository.fetch_unlocked_achievements("user-2") == []

    def test_feature_meta_round_trip(self):
        self.repository.insert_usage_record(make_usage())
        record = make_feedback(context=FeedbackContext(
            source_text="Hello", feature_meta={"cardIndex": 2, "tags": ["formal"]}
        ))
        self.repository.insert_feedback(record)

        stored = self.repository.get_feedback("feedback-1")
        assert stored.context.feature_meta == {"cardIndex": 2, "tags": ["formal"]}

    def test_language_progress_round_trip(self):
        assert self.repository.get_language_progress("user-1", "lang-kannada") is None

        progress = LanguageProgress(
            user_id="user-1", language_id="lang-kannada", progress=50,
            lessons_completed=1, last_activity=BASE_TIME
        )
        self.repository.save_language_progress(progress)
        self.repository.save_language_progress(LanguageProgress("user-2", "lang-hindi"))

        assert self.repository.get_language_progress("user-1", "lang-kannada") == progress
        assert self.repository.get_language_progress("user-1", "lang-hindi") is None

    def test_language_progress_replaced_and_ordered(self):
        self.repository.save_language_progress(LanguageProgress("user-1", "lang-kannada"))
        self.repository.save_language_progress(LanguageProgress("user-1", "lang-hindi"))
        self.repository.save_language_progress(
            LanguageProgress("user-1", "lang-kannada", progress=100, lessons_completed=2)
        )

        stored = self.repository.fetch_language_progress("user-1")
        assert [(p.language_id, p.progress) for p in stored] == [
            ("lang-hindi", 0), ("lang-kannada", 100)
        ]
        assert self.repository.fetch_language_progress("user-2") == []


class TestMemoryRepository(_RepositoryContract):
    """Test the in-memory backend."""

    def make_repository(self):
        return MemoryRepository()

    def test_duplicate_usage_id_rejected(self):
        self.repository.insert_usage_record(make_usage())
        with pytest.raises(ValueError, match="already exists"):
            self.repository.insert_usage_record(make_usage())

    def test_fetch_returns_snapshot(self):
        """Verify later writes do not leak into an earlier result."""
        self.repository.insert_usage_record(make_usage("a"))
        records = self.repository.fetch_usage_records(UsageFilters())
        self.repository.insert_usage_record(make_usage("b"))
        assert [r.id for r in records] == ["a"]


class TestSQLiteRepository(_RepositoryContract):
    """Test the SQLite backend."""

    def make_repository(self):
        db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(db_path)
        return SQLiteRepository(db_path)

    def test_language_id_column_populated(self):
        self.repository.insert_usage_record(make_usage())

        conn = get_connection(self.repository.db_path)
        try:
            row = conn.execute("SELECT language_id FROM usage_record").fetchone()
        finally:
            conn.close()
        assert row["language_id"] == "kannada"

    def test_naive_bound_is_utc(self):
        self.repository.insert_usage_record(make_usage())

        records = self.repository.fetch_usage_records(
            UsageFilters(start=datetime(2024, 7, 1, 12, 0, 0))
        )
        assert len(records) == 1

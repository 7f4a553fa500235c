"""
Repository pattern for data access.

Two interchangeable backends share one contract: a SQLite ledger for
real deployments and an in-memory store for tests and demos. Usage
records and engagement events are append-only; feedback records are
updated in place by id.
"""

import json
import logging
import threading
from dataclasses import asdict, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .db import DEFAULT_DB_PATH, get_connection
from .filters import (
    EngagementFilters,
    FeedbackFilters,
    RecordFilters,
    UsageFilters,
    apply_limit,
    as_utc,
)
from .models import (
    EngagementEvent,
    FeedbackContext,
    FeedbackReason,
    FeedbackRecord,
    FeedbackSignal,
    FeedbackTouchpoint,
    LanguageProgress,
    UnlockedAchievement,
    UsageRecord,
    UserProfile,
)

logger = logging.getLogger(__name__)

# Feedback fields a later submission may overwrite
MUTABLE_FEEDBACK_FIELDS = frozenset({"signal", "reason", "comment", "xp_delta", "touchpoint"})


class RecordNotFoundError(LookupError):
    """Raised when a referenced usage record or feedback record does not exist."""


class AnalyticsRepository(Protocol):
    """Storage contract every backend implements."""

    def insert_usage_record(self, record: UsageRecord) -> UsageRecord:
        """Append a usage record."""

    def get_usage_record(self, record_id: str) -> Optional[UsageRecord]:
        """Look up a usage record by id."""

    def fetch_usage_records(
        self, filters: UsageFilters, limit: Optional[int] = None
    ) -> List[UsageRecord]:
        """Matching usage records, newest first."""

    def insert_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        """Store a new feedback record."""

    def get_feedback(self, feedback_id: str) -> Optional[FeedbackRecord]:
        """Look up a feedback record by id."""

    def update_feedback(
        self, feedback_id: str, changes: Dict[str, Any]
    ) -> Optional[FeedbackRecord]:
        """Overwrite mutable fields of a feedback record; None if it does not exist."""

    def fetch_feedback(
        self, filters: FeedbackFilters, limit: Optional[int] = None
    ) -> List[FeedbackRecord]:
        """Matching feedback records, newest first."""

    def insert_engagement_event(self, event: EngagementEvent) -> EngagementEvent:
        """Append an engagement event."""

    def fetch_engagement_events(
        self, filters: EngagementFilters, limit: Optional[int] = None
    ) -> List[EngagementEvent]:
        """Matching engagement events, newest first."""

    def get_active_model_id(self) -> Optional[str]:
        """The persisted model selection, if any."""

    def set_active_model_id(self, model_id: str) -> None:
        """Persist the model selection."""

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        """Gamification state of a user, if they have any."""

    def save_user_profile(self, profile: UserProfile) -> UserProfile:
        """Create or replace a user's gamification state."""

    def fetch_unlocked_achievements(self, user_id: str) -> List[UnlockedAchievement]:
        """Achievements a user has earned, oldest first."""

    def insert_unlocked_achievement(self, unlocked: UnlockedAchievement) -> bool:
        """Record an unlock; False if the user already had it."""

    def get_language_progress(self, user_id: str, language_id: str) -> Optional[LanguageProgress]:
        """A user's progress in one language, if they started it."""

    def save_language_progress(self, progress: LanguageProgress) -> LanguageProgress:
        """Create or replace a user's progress in one language."""

    def fetch_language_progress(self, user_id: str) -> List[LanguageProgress]:
        """Progress in every language a user has started, by language id."""


def _check_feedback_changes(changes: Dict[str, Any]) -> None:
    unknown = set(changes) - MUTABLE_FEEDBACK_FIELDS
    if unknown:
        raise ValueError(f"Feedback fields cannot be updated: {sorted(unknown)}")


class MemoryRepository:
    """In-memory backend.

    Reads copy the underlying collection before filtering, so a write
    landing mid-aggregation is simply not reflected in that result.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._usage: List[UsageRecord] = []
        self._usage_by_id: Dict[str, UsageRecord] = {}
        self._feedback: Dict[str, FeedbackRecord] = {}
        self._engagement: List[EngagementEvent] = []
        self._active_model_id: Optional[str] = None
        self._profiles: Dict[str, UserProfile] = {}
        self._unlocked: List[UnlockedAchievement] = []
        self._progress: Dict[Tuple[str, str], LanguageProgress] = {}

    def insert_usage_record(self, record: UsageRecord) -> UsageRecord:
        with self._lock:
            if record.id in self._usage_by_id:
                raise ValueError(f"Usage record {record.id} already exists")
            self._usage.append(record)
            self._usage_by_id[record.id] = record
        return record

    def get_usage_record(self, record_id: str) -> Optional[UsageRecord]:
        return self._usage_by_id.get(record_id)

    def fetch_usage_records(
        self, filters: UsageFilters, limit: Optional[int] = None
    ) -> List[UsageRecord]:
        with self._lock:
            snapshot = list(self._usage)
        return self._select(snapshot, filters, limit)

    def insert_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        with self._lock:
            if record.usage_record_id not in self._usage_by_id:
                raise RecordNotFoundError(f"Usage record {record.usage_record_id} not found")
            if record.id in self._feedback:
                raise ValueError(f"Feedback record {record.id} already exists")
            self._feedback[record.id] = record
        return record

    def get_feedback(self, feedback_id: str) -> Optional[FeedbackRecord]:
        return self._feedback.get(feedback_id)

    def update_feedback(
        self, feedback_id: str, changes: Dict[str, Any]
    ) -> Optional[FeedbackRecord]:
        _check_feedback_changes(changes)
        with self._lock:
            existing = self._feedback.get(feedback_id)
            if existing is None:
                return None
            updated = replace(existing, **changes)
            self._feedback[feedback_id] = updated
        return updated

    def fetch_feedback(
        self, filters: FeedbackFilters, limit: Optional[int] = None
    ) -> List[FeedbackRecord]:
        with self._lock:
            snapshot = list(self._feedback.values())
        return self._select(snapshot, filters, limit)

    def insert_engagement_event(self, event: EngagementEvent) -> EngagementEvent:
        with self._lock:
            self._engagement.append(event)
        return event

    def fetch_engagement_events(
        self, filters: EngagementFilters, limit: Optional[int] = None
    ) -> List[EngagementEvent]:
        with self._lock:
            snapshot = list(self._engagement)
        return self._select(snapshot, filters, limit)

    def get_active_model_id(self) -> Optional[str]:
        return self._active_model_id

    def set_active_model_id(self, model_id: str) -> None:
        with self._lock:
            self._active_model_id = model_id

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    def save_user_profile(self, profile: UserProfile) -> UserProfile:
        with self._lock:
            self._profiles[profile.user_id] = profile
        return profile

    def fetch_unlocked_achievements(self, user_id: str) -> List[UnlockedAchievement]:
        with self._lock:
            snapshot = list(self._unlocked)
        return [item for item in snapshot if item.user_id == user_id]

    def insert_unlocked_achievement(self, unlocked: UnlockedAchievement) -> bool:
        with self._lock:
            for item in self._unlocked:
                if (item.user_id == unlocked.user_id
                        and item.achievement_id == unlocked.achievement_id):
                    return False
            self._unlocked.append(unlocked)
        return True

    def get_language_progress(self, user_id: str, language_id: str) -> Optional[LanguageProgress]:
        return self._progress.get((user_id, language_id))

    def save_language_progress(self, progress: LanguageProgress) -> LanguageProgress:
        with self._lock:
            self._progress[(progress.user_id, progress.language_id)] = progress
        return progress

    def fetch_language_progress(self, user_id: str) -> List[LanguageProgress]:
        with self._lock:
            snapshot = list(self._progress.values())
        return sorted(
            (item for item in snapshot if item.user_id == user_id),
            key=lambda item: item.language_id
        )

    @staticmethod
    def _select(snapshot: List[Any], filters: RecordFilters, limit: Optional[int]) -> List[Any]:
        matching = [item for item in reversed(snapshot) if filters.matches(item)]
        # Stable sort: records sharing a timestamp stay newest-inserted first
        matching.sort(key=lambda item: as_utc(getattr(item, filters.timestamp_field)), reverse=True)
        return apply_limit(matching, limit)


def _format_timestamp(value: datetime) -> str:
    """Fixed-width UTC text so that string order equals time order."""
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _build_where(filters: RecordFilters, timestamp_column: str) -> Tuple[str, List[Any]]:
    conditions = []
    params: List[Any] = []

    # Criteria keys are dataclass field names, which double as column names
    for column, value in filters.criteria().items():
        conditions.append(f"{column} = ?")
        params.append(value)

    start, end = filters.bounds()
    if start is not None:
        conditions.append(f"{timestamp_column} >= ?")
        params.append(_format_timestamp(start))
    if end is not None:
        conditions.append(f"{timestamp_column} <= ?")
        params.append(_format_timestamp(end))

    if not conditions:
        return "", params
    return " WHERE " + " AND ".join(conditions), params


def _row_to_usage_record(row) -> UsageRecord:
    return UsageRecord(
        id=row["id"],
        timestamp=_parse_timestamp(row["timestamp"]),
        user_id=row["user_id"],
        session_id=row["session_id"],
        provider=row["provider"],
        model_id=row["model_id"],
        operation=row["operation"],
        feature=row["feature"],
        input_tokens=row["input_tokens"],
        output_tokens=row["output_tokens"],
        total_tokens=row["total_tokens"],
        input_cost=row["input_cost"],
        output_cost=row["output_cost"],
        total_cost=row["total_cost"],
        currency=row["currency"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        duration_ms=row["duration_ms"]
    )


def _row_to_feedback(row) -> FeedbackRecord:
    context = json.loads(row["context"]) if row["context"] else None
    return FeedbackRecord(
        id=row["id"],
        usage_record_id=row["usage_record_id"],
        user_id=row["user_id"],
        session_id=row["session_id"],
        provider=row["provider"],
        model_id=row["model_id"],
        language_id=row["language_id"],
        operation=row["operation"],
        feature=row["feature"],
        touchpoint=FeedbackTouchpoint(row["touchpoint"]),
        signal=FeedbackSignal(row["signal"]),
        reason=FeedbackReason(row["reason"]) if row["reason"] else None,
        comment=row["comment"],
        xp_delta=row["xp_delta"],
        created_at=_parse_timestamp(row["created_at"]),
        context=FeedbackContext(**context) if context is not None else None,
        functionality=row["functionality"],
        learning_mode=row["learning_mode"],
        learning_level=row["learning_level"]
    )


def _row_to_engagement_event(row) -> EngagementEvent:
    return EngagementEvent(
        id=row["id"],
        user_id=row["user_id"],
        session_id=row["session_id"],
        provider=row["provider"],
        model_id=row["model_id"],
        language_id=row["language_id"],
        operation=row["operation"],
        feature=row["feature"],
        action=row["action"],
        xp_delta=row["xp_delta"],
        functionality=row["functionality"],
        learning_mode=row["learning_mode"],
        learning_level=row["learning_level"],
        timestamp=_parse_timestamp(row["timestamp"])
    )


def _row_to_language_progress(row) -> LanguageProgress:
    return LanguageProgress(
        user_id=row["user_id"],
        language_id=row["language_id"],
        level=row["level"],
        progress=row["progress"],
        lessons_completed=row["lessons_completed"],
        last_activity=_parse_timestamp(row["last_activity"]) if row["last_activity"] else None
    )


class SQLiteRepository:
    """SQLite backend.

    Opens a connection per operation, the same way the module-level
    helpers do, so instances are safe to share between requests.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def insert_usage_record(self, record: UsageRecord) -> UsageRecord:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO usage_record
                (id, timestamp, user_id, session_id, provider, model_id, language_id,
                 operation, feature, input_tokens, output_tokens, total_tokens,
                 input_cost, output_cost, total_cost, currency, metadata, duration_ms)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.id,
                _format_timestamp(record.timestamp),
                record.user_id,
                record.session_id,
                record.provider,
                record.model_id,
                record.language_id,
                record.operation,
                record.feature,
                record.input_tokens,
                record.output_tokens,
                record.total_tokens,
                record.input_cost,
                record.output_cost,
                record.total_cost,
                record.currency,
                json.dumps(record.metadata),
                record.duration_ms
            ))
            conn.commit()
        finally:
            conn.close()
        return record

    def get_usage_record(self, record_id: str) -> Optional[UsageRecord]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM usage_record WHERE id = ?", (record_id,)
            ).fetchone()
            return _row_to_usage_record(row) if row else None
        finally:
            conn.close()

    def fetch_usage_records(
        self, filters: UsageFilters, limit: Optional[int] = None
    ) -> List[UsageRecord]:
        rows = self._select("usage_record", "timestamp", filters, limit)
        return [_row_to_usage_record(row) for row in rows]

    def insert_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        if self.get_usage_record(record.usage_record_id) is None:
            raise RecordNotFoundError(f"Usage record {record.usage_record_id} not found")

        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO feedback_record
                (id, usage_record_id, user_id, session_id, provider, model_id, language_id,
                 operation, feature, touchpoint, signal, reason, comment, xp_delta,
                 created_at, context, functionality, learning_mode, learning_level)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.id,
                record.usage_record_id,
                record.user_id,
                record.session_id,
                record.provider,
                record.model_id,
                record.language_id,
                record.operation,
                record.feature,
                record.touchpoint.value,
                record.signal.value,
                record.reason.value if record.reason else None,
                record.comment,
                record.xp_delta,
                _format_timestamp(record.created_at),
                json.dumps(asdict(record.context)) if record.context else None,
                record.functionality,
                record.learning_mode,
                record.learning_level
            ))
            conn.commit()
        finally:
            conn.close()
        return record

    def get_feedback(self, feedback_id: str) -> Optional[FeedbackRecord]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM feedback_record WHERE id = ?", (feedback_id,)
            ).fetchone()
            return _row_to_feedback(row) if row else None
        finally:
            conn.close()

    def update_feedback(
        self, feedback_id: str, changes: Dict[str, Any]
    ) -> Optional[FeedbackRecord]:
        _check_feedback_changes(changes)
        existing = self.get_feedback(feedback_id)
        if existing is None:
            return None
        updated = replace(existing, **changes)

        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                UPDATE feedback_record
                SET touchpoint = ?, signal = ?, reason = ?, comment = ?, xp_delta = ?
                WHERE id = ?
            """, (
                updated.touchpoint.value,
                updated.signal.value,
                updated.reason.value if updated.reason else None,
                updated.comment,
                updated.xp_delta,
                feedback_id
            ))
            conn.commit()
        finally:
            conn.close()
        return updated

    def fetch_feedback(
        self, filters: FeedbackFilters, limit: Optional[int] = None
    ) -> List[FeedbackRecord]:
        rows = self._select("feedback_record", "created_at", filters, limit)
        return [_row_to_feedback(row) for row in rows]

    def insert_engagement_event(self, event: EngagementEvent) -> EngagementEvent:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO engagement_event
                (id, user_id, session_id, provider, model_id, language_id, operation,
                 feature, action, xp_delta, functionality, learning_mode, learning_level,
                 timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                event.id,
                event.user_id,
                event.session_id,
                event.provider,
                event.model_id,
                event.language_id,
                event.operation,
                event.feature,
                event.action,
                event.xp_delta,
                event.functionality,
                event.learning_mode,
                event.learning_level,
                _format_timestamp(event.timestamp)
            ))
            conn.commit()
        finally:
            conn.close()
        return event

    def fetch_engagement_events(
        self, filters: EngagementFilters, limit: Optional[int] = None
    ) -> List[EngagementEvent]:
        rows = self._select("engagement_event", "timestamp", filters, limit)
        return [_row_to_engagement_event(row) for row in rows]

    def get_active_model_id(self) -> Optional[str]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT value FROM ai_settings WHERE key = 'active_model_id'"
            ).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def set_active_model_id(self, model_id: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                "INSERT OR REPLACE INTO ai_settings (key, value) VALUES ('active_model_id', ?)",
                (model_id,)
            )
            conn.commit()
        finally:
            conn.close()

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM user_profile WHERE user_id = ?", (user_id,)
            ).fetchone()
            if row is None:
                return None
            return UserProfile(
                user_id=row["user_id"],
                xp=row["xp"],
                streak=row["streak"],
                lessons_completed=row["lessons_completed"],
                last_active_on=(
                    date.fromisoformat(row["last_active_on"]) if row["last_active_on"] else None
                )
            )
        finally:
            conn.close()

    def save_user_profile(self, profile: UserProfile) -> UserProfile:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT OR REPLACE INTO user_profile
                (user_id, xp, streak, lessons_completed, last_active_on)
                VALUES (?, ?, ?, ?, ?)
            """, (
                profile.user_id,
                profile.xp,
                profile.streak,
                profile.lessons_completed,
                profile.last_active_on.isoformat() if profile.last_active_on else None
            ))
            conn.commit()
        finally:
            conn.close()
        return profile

    def fetch_unlocked_achievements(self, user_id: str) -> List[UnlockedAchievement]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("""
                SELECT user_id, achievement_id, unlocked_at FROM unlocked_achievement
                WHERE user_id = ? ORDER BY unlocked_at, rowid
            """, (user_id,)).fetchall()
            return [
                UnlockedAchievement(
                    user_id=row["user_id"],
                    achievement_id=row["achievement_id"],
                    unlocked_at=_parse_timestamp(row["unlocked_at"])
                )
                for row in rows
            ]
        finally:
            conn.close()

    def insert_unlocked_achievement(self, unlocked: UnlockedAchievement) -> bool:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                INSERT OR IGNORE INTO unlocked_achievement (user_id, achievement_id, unlocked_at)
                VALUES (?, ?, ?)
            """, (
                unlocked.user_id,
                unlocked.achievement_id,
                _format_timestamp(unlocked.unlocked_at)
            ))
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()

    def get_language_progress(self, user_id: str, language_id: str) -> Optional[LanguageProgress]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM language_progress WHERE user_id = ? AND language_id = ?",
                (user_id, language_id)
            ).fetchone()
            return _row_to_language_progress(row) if row else None
        finally:
            conn.close()

    def save_language_progress(self, progress: LanguageProgress) -> LanguageProgress:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT OR REPLACE INTO language_progress
                (user_id, language_id, level, progress, lessons_completed, last_activity)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                progress.user_id,
                progress.language_id,
                progress.level,
                progress.progress,
                progress.lessons_completed,
                _format_timestamp(progress.last_activity) if progress.last_activity else None
            ))
            conn.commit()
        finally:
            conn.close()
        return progress

    def fetch_language_progress(self, user_id: str) -> List[LanguageProgress]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM language_progress WHERE user_id = ? ORDER BY language_id",
                (user_id,)
            ).fetchall()
            return [_row_to_language_progress(row) for row in rows]
        finally:
            conn.close()

    def _select(
        self,
        table: str,
        timestamp_column: str,
        filters: RecordFilters,
        limit: Optional[int]
    ) -> List[Any]:
        where, params = _build_where(filters, timestamp_column)
        query = f"SELECT * FROM {table}{where} ORDER BY {timestamp_column} DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = get_connection(self.db_path)
        try:
            return conn.execute(query, params).fetchall()
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the ledger tables if they don't exist.

    usage_record and engagement_event are append-only; no UPDATE or
    DELETE should ever be issued against them.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS usage_record (
                id TEXT PRIMARY KEY,
                timestamp TEXT NOT NULL,
                user_id TEXT NOT NULL,
                session_id TEXT,
                provider TEXT NOT NULL,
                model_id TEXT NOT NULL,
                language_id TEXT,
                operation TEXT NOT NULL,
                feature TEXT NOT NULL,
                input_tokens INTEGER NOT NULL,
                output_tokens INTEGER NOT NULL,
                total_tokens INTEGER NOT NULL,
                input_cost REAL NOT NULL,
                output_cost REAL NOT NULL,
                total_cost REAL NOT NULL,
                currency TEXT NOT NULL,
                metadata TEXT NOT NULL DEFAULT '{}',
                duration_ms REAL
            );

            CREATE TABLE IF NOT EXISTS feedback_record (
                id TEXT PRIMARY KEY,
                usage_record_id TEXT NOT NULL REFERENCES usage_record(id),
                user_id TEXT NOT NULL,
                session_id TEXT,
                provider TEXT NOT NULL,
                model_id TEXT NOT NULL,
                language_id TEXT,
                operation TEXT NOT NULL,
                feature TEXT NOT NULL,
                touchpoint TEXT NOT NULL,
                signal TEXT NOT NULL,
                reason TEXT,
                comment TEXT,
                xp_delta INTEGER,
                created_at TEXT NOT NULL,
                context TEXT,
                functionality TEXT,
                learning_mode TEXT,
                learning_level TEXT
            );

            CREATE TABLE IF NOT EXISTS engagement_event (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                session_id TEXT,
                provider TEXT NOT NULL,
                model_id TEXT NOT NULL,
                language_id TEXT,
                operation TEXT NOT NULL,
                feature TEXT NOT NULL,
                action TEXT NOT NULL,
                xp_delta INTEGER,
                functionality TEXT,
                learning_mode TEXT,
                learning_level TEXT,
                timestamp TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS ai_settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS user_profile (
                user_id TEXT PRIMARY KEY,
                xp INTEGER NOT NULL DEFAULT 0,
                streak INTEGER NOT NULL DEFAULT 0,
                lessons_completed INTEGER NOT NULL DEFAULT 0,
                last_active_on TEXT
            );

            CREATE TABLE IF NOT EXISTS unlocked_achievement (
                user_id TEXT NOT NULL,
                achievement_id TEXT NOT NULL,
                unlocked_at TEXT NOT NULL,
                PRIMARY KEY (user_id, achievement_id)
            );

            CREATE TABLE IF NOT EXISTS language_progress (
                user_id TEXT NOT NULL,
                language_id TEXT NOT NULL,
                level TEXT NOT NULL DEFAULT 'basic',
                progress INTEGER NOT NULL DEFAULT 0,
                lessons_completed INTEGER NOT NULL DEFAULT 0,
                last_activity TEXT,
                PRIMARY KEY (user_id, language_id)
            );
        """)
        conn.commit()
    finally:
        conn.close()
    logger.debug("Schema initialized at %s", db_path)


# Global repository instance
_default_repository: Optional[SQLiteRepository] = None


def get_repository(db_path: str = DEFAULT_DB_PATH) -> SQLiteRepository:
    """Get a repository instance.

    This function provides a singleton instance of the SQLiteRepository.
    A later call with a different path replaces the singleton.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of SQLiteRepository
    """
    global _default_repository
    if _default_repository is None or _default_repository.db_path != db_path:
        _default_repository = SQLiteRepository(db_path)
    return _default_repository

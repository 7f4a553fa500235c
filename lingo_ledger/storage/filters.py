"""
Query filters shared by every repository backend.

All criteria are optional and conjunctive. Time bounds are inclusive and
arrive as ISO-8601 strings from the HTTP layer; anything that does not
parse is treated as "no bound".
"""

from dataclasses import dataclass, fields
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

T = TypeVar("T")

TimestampBound = Union[str, datetime, date, None]


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp_bound(value: TimestampBound) -> Optional[datetime]:
    """Parse a filter bound, returning None when it is missing or malformed."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return as_utc(parsed)


@dataclass(frozen=True)
class RecordFilters:
    """Criteria common to every record type."""
    start: TimestampBound = None
    end: TimestampBound = None
    limit: Optional[int] = None

    # Record attribute holding the time the record was created
    timestamp_field: ClassVar[str] = "timestamp"
    _non_criteria: ClassVar[Tuple[str, ...]] = ("start", "end", "limit")

    def __post_init__(self):
        """Validate limit is usable."""
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit cannot be negative")

    def criteria(self) -> Dict[str, Any]:
        """Equality criteria that were actually set, keyed by record attribute."""
        result = {}
        for f in fields(self):
            if f.name in self._non_criteria:
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            result[f.name] = value.value if isinstance(value, Enum) else value
        return result

    def bounds(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Parsed (start, end) bounds; malformed values come back as None."""
        return parse_timestamp_bound(self.start), parse_timestamp_bound(self.end)

    def matches(self, record: Any) -> bool:
        """Check a record against every criterion and both bounds."""
        for attribute, expected in self.criteria().items():
            actual = getattr(record, attribute, None)
            if isinstance(actual, Enum):
                actual = actual.value
            if actual != expected:
                return False

        start, end = self.bounds()
        if start is None and end is None:
            return True
        stamp = as_utc(getattr(record, self.timestamp_field))
        if start is not None and stamp < start:
            return False
        if end is not None and stamp > end:
            return False
        return True


@dataclass(frozen=True)
class UsageFilters(RecordFilters):
    """Filters for usage records."""
    user_id: Optional[str] = None
    language_id: Optional[str] = None
    model_id: Optional[str] = None
    operation: Optional[str] = None
    feature: Optional[str] = None


@dataclass(frozen=True)
class FeedbackFilters(RecordFilters):
    """Filters for feedback records."""
    user_id: Optional[str] = None
    language_id: Optional[str] = None
    model_id: Optional[str] = None
    operation: Optional[str] = None
    feature: Optional[str] = None
    touchpoint: Optional[Union[str, Enum]] = None
    signal: Optional[Union[str, Enum]] = None
    functionality: Optional[str] = None
    learning_mode: Optional[str] = None
    learning_level: Optional[str] = None

    timestamp_field: ClassVar[str] = "created_at"


@dataclass(frozen=True)
class EngagementFilters(RecordFilters):
    """Filters for engagement events."""
    user_id: Optional[str] = None
    language_id: Optional[str] = None
    model_id: Optional[str] = None
    operation: Optional[str] = None
    feature: Optional[str] = None
    action: Optional[str] = None
    functionality: Optional[str] = None
    learning_mode: Optional[str] = None
    learning_level: Optional[str] = None


def apply_limit(items: Sequence[T], limit: Optional[int]) -> List[T]:
    """Truncate to at most `limit` items, keeping order."""
    if limit is None:
        return list(items)
    return list(items[:limit])

"""
Usage recording for AI calls.

Every billed model call ends up here: tokens are normalized, cost is
computed from the pricing table and an immutable usage record is
written. Failures are loud; nothing is retried or buffered.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from ..sdk.types import ModelAdapter, ModelResponse
from ..storage.models import EngagementEvent, UsageRecord
from ..storage.repository import AnalyticsRepository
from .pricing import calculate_usage_cost
from .token_counter import normalize_usage

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "user-1"


@dataclass(frozen=True)
class EngagementDirective:
    """Ask the recorder to log an engagement event alongside the usage."""
    action: str
    xp_delta: Optional[int] = None


def resolve_user_id(headers: Mapping[str, str]) -> str:
    """User id from the x-user-id header, or the demo user."""
    value = _header(headers, "x-user-id")
    return value.strip() if value and value.strip() else DEFAULT_USER_ID


def resolve_session_id(headers: Mapping[str, str]) -> Optional[str]:
    """Session id from the x-session-id header, if present."""
    value = _header(headers, "x-session-id")
    return value.strip() if value and value.strip() else None


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _metadata_str(metadata: Mapping[str, Any], key: str) -> Optional[str]:
    value = metadata.get(key)
    return value if isinstance(value, str) and value else None


class UsageRecorder:
    """Writes usage records (and optional engagement events) for AI calls."""

    def __init__(self, repository: AnalyticsRepository):
        self.repository = repository

    def record_usage(
        self,
        adapter: ModelAdapter,
        operation: str,
        feature: str,
        response: Optional[ModelResponse[Any]],
        metadata: Optional[Dict[str, Any]] = None,
        user_id: str = DEFAULT_USER_ID,
        session_id: Optional[str] = None,
        engagement: Optional[EngagementDirective] = None,
        duration_ms: Optional[float] = None
    ) -> UsageRecord:
        """Persist the usage of one model call.

        Exactly one usage record is written per call, even when the
        response is missing (failed call) or the metadata is sparse.

        Args:
            adapter: Adapter that served the call
            operation: Adapter operation, e.g. "translate_text"
            feature: Product feature, e.g. "translation"
            response: Adapter response, or None if the call failed
            metadata: Free-form context (languageId, learningMode, ...)
            user_id: Calling user
            session_id: Calling session
            engagement: Also log an engagement event when given
            duration_ms: Wall-clock duration of the call

        Returns:
            The stored usage record

        Raises:
            Storage errors: Propagated without modification
        """
        metadata = dict(metadata or {})
        usage = normalize_usage(response.usage if response is not None else None)
        cost = calculate_usage_cost(adapter.id, usage.input_tokens, usage.output_tokens)

        record = UsageRecord(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            user_id=user_id,
            session_id=session_id,
            provider=adapter.info.provider,
            model_id=adapter.id,
            operation=operation,
            feature=feature,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
            input_cost=cost.input_cost,
            output_cost=cost.output_cost,
            total_cost=cost.total_cost,
            currency=cost.currency,
            metadata=metadata,
            duration_ms=duration_ms
        )
        self.repository.insert_usage_record(record)
        logger.debug(
            "Recorded %s/%s on %s: %d tokens, %.6f %s",
            feature, operation, adapter.id, record.total_tokens, record.total_cost, record.currency
        )

        if engagement is not None:
            self.repository.insert_engagement_event(EngagementEvent(
                id=str(uuid.uuid4()),
                user_id=user_id,
                session_id=session_id,
                provider=adapter.info.provider,
                model_id=adapter.id,
                language_id=_metadata_str(metadata, "languageId"),
                operation=operation,
                feature=feature,
                action=engagement.action,
                xp_delta=engagement.xp_delta,
                functionality=_metadata_str(metadata, "functionality"),
                learning_mode=_metadata_str(metadata, "learningMode"),
                learning_level=(
                    _metadata_str(metadata, "learningLevel") or _metadata_str(metadata, "level")
                ),
                timestamp=record.timestamp
            ))

        return record

"""
Learning flows backed by the active model.

Each flow picks an adapter, calls it, and records the usage (and an
engagement event) so that every response shown to a learner can later
be rated and billed.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from ..sdk.gemini_client import UpstreamError
from ..sdk.types import (
    CheckAnswerDetailedResult,
    CheckAnswerResult,
    LessonContent,
    ModelAdapter,
    ModelResponse,
    TranslationResult,
    TranslationWithAnalysisResult,
    WordAnalysisResult,
)
from ..storage.models import UnlockedAchievement, UsageRecord
from .curriculum import get_lesson
from .gamification import GamificationService
from .recorder import DEFAULT_USER_ID, EngagementDirective, UsageRecorder
from .registry import ModelRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

CORRECT_ANSWER_XP = 10


@dataclass(frozen=True)
class AIInteraction(Generic[T]):
    """A model result together with the usage record it was billed under.

    `xp_awarded` and `unlocked` report what a graded answer earned.
    """
    data: T
    usage_record: UsageRecord
    xp_awarded: int = 0
    unlocked: Tuple[UnlockedAchievement, ...] = ()


@dataclass(frozen=True)
class EnrichedLessonItem:
    """A practice sentence with its word analysis, when that succeeded."""
    content: LessonContent
    analysis: Optional[WordAnalysisResult] = None
    analysis_usage_record_id: Optional[str] = None


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class LearningService:
    """Content generation, translation and answer checking.

    With a GamificationService attached, XP earned by correct answers
    is credited to the learner's profile.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        recorder: UsageRecorder,
        gamification: Optional[GamificationService] = None
    ):
        self.registry = registry
        self.recorder = recorder
        self.gamification = gamification

    def generate_content(
        self,
        language_code: str,
        language_name: str,
        region: str,
        level: str,
        category: str,
        count: int = 5,
        enrich: bool = True,
        language_id: Optional[str] = None,
        learning_mode: Optional[str] = None,
        model_id: Optional[str] = None,
        user_id: str = DEFAULT_USER_ID,
        session_id: Optional[str] = None
    ) -> AIInteraction[List[EnrichedLessonItem]]:
        """Generate practice sentences, optionally with word analysis.

        Enrichment runs per sentence; a sentence whose analysis fails is
        returned without one rather than failing the batch.
        """
        adapter = self.registry.resolve_adapter(model_id)
        metadata = _compact({
            "languageId": language_id,
            "languageCode": language_code,
            "languageName": language_name,
            "learningLevel": level,
            "learningMode": learning_mode,
            "functionality": "content-generation",
            "category": category,
            "count": count,
        })

        interaction = self._call(
            adapter,
            operation="generate_content",
            feature="content-generation",
            call=lambda: adapter.generate_content(
                language_code, language_name, region, level, category, count
            ),
            metadata=metadata,
            user_id=user_id,
            session_id=session_id,
            engagement_for=lambda items: EngagementDirective(action="content_generated")
        )

        items = [EnrichedLessonItem(content=content) for content in interaction.data]
        if enrich:
            items = [
                self._enrich(adapter, item.content, language_code, metadata, user_id, session_id)
                for item in items
            ]
        return AIInteraction(data=items, usage_record=interaction.usage_record)

    def analyze_words(
        self,
        english_text: str,
        target_text: str,
        language_code: str,
        language_id: Optional[str] = None,
        model_id: Optional[str] = None,
        user_id: str = DEFAULT_USER_ID,
        session_id: Optional[str] = None
    ) -> AIInteraction[WordAnalysisResult]:
        adapter = self.registry.resolve_adapter(model_id)
        return self._call(
            adapter,
            operation="analyze_words_for_learning",
            feature="word-analysis",
            call=lambda: adapter.analyze_words_for_learning(english_text, target_text, language_code),
            metadata=_compact({
                "languageId": language_id,
                "languageCode": language_code,
                "functionality": "word-analysis",
                "sourceText": english_text,
                "translationText": target_text,
            }),
            user_id=user_id,
            session_id=session_id,
            engagement_for=lambda result: EngagementDirective(action="words_analyzed")
        )

    def translate_text(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        language_id: Optional[str] = None,
        learning_mode: Optional[str] = None,
        model_id: Optional[str] = None,
        user_id: str = DEFAULT_USER_ID,
        session_id: Optional[str] = None
    ) -> AIInteraction[TranslationResult]:
        adapter = self.registry.resolve_adapter(model_id)
        return self._call(
            adapter,
            operation="translate_text",
            feature="translation",
            call=lambda: adapter.translate_text(text, source_lang, target_lang),
            metadata=_compact({
                "languageId": language_id,
                "languageCode": target_lang,
                "learningMode": learning_mode,
                "functionality": "translation",
                "sourceText": text,
                "sourceLang": source_lang,
                "targetLang": target_lang,
            }),
            user_id=user_id,
            session_id=session_id,
            result_metadata=lambda result: _compact({
                "translationText": result.translation,
                "transliteration": result.transliteration,
            }),
            engagement_for=lambda result: EngagementDirective(action="translation_requested")
        )

    def translate_with_analysis(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        language_code: str,
        language_id: Optional[str] = None,
        learning_mode: Optional[str] = None,
        model_id: Optional[str] = None,
        user_id: str = DEFAULT_USER_ID,
        session_id: Optional[str] = None
    ) -> AIInteraction[TranslationWithAnalysisResult]:
        adapter = self.registry.resolve_adapter(model_id)
        return self._call(
            adapter,
            operation="translate_with_analysis",
            feature="translation-with-analysis",
            call=lambda: adapter.translate_with_analysis(text, source_lang, target_lang, language_code),
            metadata=_compact({
                "languageId": language_id,
                "languageCode": language_code,
                "learningMode": learning_mode,
                "functionality": "translation-with-analysis",
                "sourceText": text,
                "sourceLang": source_lang,
                "targetLang": target_lang,
            }),
            user_id=user_id,
            session_id=session_id,
            result_metadata=lambda result: _compact({
                "translationText": result.translation,
                "transliteration": result.transliteration,
            }),
            engagement_for=lambda result: EngagementDirective(action="translation_requested")
        )

    def check_answer(
        self,
        user_answer: str,
        correct_answer: str,
        context: str,
        mode: str,
        language_id: Optional[str] = None,
        level: Optional[str] = None,
        model_id: Optional[str] = None,
        user_id: str = DEFAULT_USER_ID,
        session_id: Optional[str] = None
    ) -> AIInteraction[CheckAnswerResult]:
        """Grade an answer; a correct one earns CORRECT_ANSWER_XP."""
        adapter = self.registry.resolve_adapter(model_id)
        interaction = self._call(
            adapter,
            operation="check_answer",
            feature="check-answer",
            call=lambda: adapter.check_answer(user_answer, correct_answer, context, mode),
            metadata=_compact({
                "languageId": language_id,
                "learningMode": mode,
                "learningLevel": level,
                "functionality": "check-answer",
                "sourceText": correct_answer,
            }),
            user_id=user_id,
            session_id=session_id,
            engagement_for=lambda result: EngagementDirective(
                action="answer_checked",
                xp_delta=CORRECT_ANSWER_XP if result.is_correct else 0
            )
        )
        return self._reward(interaction, user_id, CORRECT_ANSWER_XP, source="check-answer")

    def check_lesson_answer(
        self,
        lesson_id: str,
        content_index: int,
        user_answer: str,
        mode: Optional[str] = None,
        model_id: Optional[str] = None,
        user_id: str = DEFAULT_USER_ID,
        session_id: Optional[str] = None
    ) -> AIInteraction[CheckAnswerResult]:
        """Grade an answer to one item of a catalog lesson.

        A correct answer earns the lesson's XP reward.

        Raises:
            LessonNotFoundError: If the lesson id is unknown
            ValueError: If the lesson has no item at content_index
        """
        lesson = get_lesson(lesson_id)
        item = lesson.item(content_index)
        mode = mode or lesson.mode
        adapter = self.registry.resolve_adapter(model_id)
        interaction = self._call(
            adapter,
            operation="check_answer",
            feature="lesson-check-answer",
            call=lambda: adapter.check_answer(
                user_answer, item.target, item.context or item.english, mode
            ),
            metadata=_compact({
                "languageId": lesson.language_id,
                "learningMode": mode,
                "learningLevel": lesson.level,
                "functionality": "lesson-check-answer",
                "lessonId": lesson.id,
                "contentIndex": content_index,
                "sourceText": item.english,
                "translationText": item.target,
                "transliteration": item.transliteration,
            }),
            user_id=user_id,
            session_id=session_id,
            engagement_for=lambda result: EngagementDirective(
                action="lesson_answer_checked",
                xp_delta=lesson.xp_reward if result.is_correct else 0
            )
        )
        return self._reward(interaction, user_id, lesson.xp_reward, source=f"lesson:{lesson.id}")

    def check_answer_detailed(
        self,
        user_answer: str,
        correct_answer: str,
        context: str,
        mode: str,
        language_id: Optional[str] = None,
        level: Optional[str] = None,
        model_id: Optional[str] = None,
        user_id: str = DEFAULT_USER_ID,
        session_id: Optional[str] = None
    ) -> AIInteraction[CheckAnswerDetailedResult]:
        adapter = self.registry.resolve_adapter(model_id)
        return self._call(
            adapter,
            operation="check_answer_detailed",
            feature="check-answer-detailed",
            call=lambda: adapter.check_answer_detailed(user_answer, correct_answer, context, mode),
            metadata=_compact({
                "languageId": language_id,
                "learningMode": mode,
                "learningLevel": level,
                "functionality": "check-answer-detailed",
                "sourceText": correct_answer,
            }),
            user_id=user_id,
            session_id=session_id,
            engagement_for=lambda result: EngagementDirective(action="detailed_feedback_requested")
        )

    def _enrich(
        self,
        adapter: ModelAdapter,
        content: LessonContent,
        language_code: str,
        metadata: Dict[str, Any],
        user_id: str,
        session_id: Optional[str]
    ) -> EnrichedLessonItem:
        try:
            interaction = self._call(
                adapter,
                operation="analyze_words_for_learning",
                feature="word-analysis",
                call=lambda: adapter.analyze_words_for_learning(
                    content.english, content.target, language_code
                ),
                metadata={
                    **metadata,
                    "functionality": "word-analysis",
                    "sourceText": content.english,
                    "translationText": content.target,
                },
                user_id=user_id,
                session_id=session_id
            )
        except UpstreamError as e:
            logger.warning("Skipping word analysis for %r: %s", content.english, e)
            return EnrichedLessonItem(content=content)

        analysis = interaction.data
        return EnrichedLessonItem(
            content=content,
            analysis=None if analysis.is_empty else analysis,
            analysis_usage_record_id=interaction.usage_record.id
        )

    def _reward(
        self,
        interaction: AIInteraction[CheckAnswerResult],
        user_id: str,
        amount: int,
        source: str
    ) -> AIInteraction[CheckAnswerResult]:
        if not interaction.data.is_correct:
            return interaction
        unlocked: List[UnlockedAchievement] = []
        if self.gamification is not None and amount > 0:
            unlocked = self.gamification.award_activity_xp(user_id, amount, source)
        return replace(interaction, xp_awarded=amount, unlocked=tuple(unlocked))

    def _call(
        self,
        adapter: ModelAdapter,
        operation: str,
        feature: str,
        call: Callable[[], ModelResponse[T]],
        metadata: Dict[str, Any],
        user_id: str,
        session_id: Optional[str],
        result_metadata: Optional[Callable[[T], Dict[str, Any]]] = None,
        engagement_for: Optional[Callable[[T], EngagementDirective]] = None
    ) -> AIInteraction[T]:
        started = time.perf_counter()
        try:
            response = call()
        except UpstreamError:
            # Failed calls are still recorded, with whatever usage is known (none)
            self.recorder.record_usage(
                adapter,
                operation,
                feature,
                None,
                metadata={**metadata, "status": "failed"},
                user_id=user_id,
                session_id=session_id,
                duration_ms=(time.perf_counter() - started) * 1000
            )
            raise
        duration_ms = (time.perf_counter() - started) * 1000

        if result_metadata is not None:
            metadata = {**metadata, **result_metadata(response.data)}

        record = self.recorder.record_usage(
            adapter,
            operation,
            feature,
            response,
            metadata=metadata,
            user_id=user_id,
            session_id=session_id,
            engagement=engagement_for(response.data) if engagement_for else None,
            duration_ms=duration_ms
        )
        return AIInteraction(data=response.data, usage_record=record)

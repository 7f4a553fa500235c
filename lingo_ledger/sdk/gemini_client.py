"""
Gemini model adapter.

Talks to Gemini through its OpenAI-compatible endpoint and turns the
JSON it returns into typed results. Token usage is passed through
untouched; recording it is the caller's job.
"""

import json
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from openai import OpenAI, OpenAIError

from ..core.catalog import ModelInfo
from ..core.token_counter import TokenUsage
from .types import (
    CheckAnswerDetailedResult,
    CheckAnswerResult,
    LessonContent,
    ModelResponse,
    TranslationResult,
    TranslationWithAnalysisResult,
    WordAnalysisResult,
    WordMeaning,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
API_KEY_ENV_VAR = "GEMINI_API_KEY"

_REGION_CONTEXTS = {
    "kn": (
        "Karnataka, India - Focus on Bengaluru workplace communication, market interactions, "
        "local transport (auto-rickshaw, bus), food ordering, and expressions used in tech "
        "companies and local businesses."
    ),
    "hi": (
        "All India - Universal phrases for travel, business, Bollywood culture, railway "
        "stations, restaurants, and communication across different Indian states."
    ),
}

_LEVEL_DESCRIPTIONS = {
    "basic": "Beginner - simple, essential phrases for basic communication (1-6 words)",
    "intermediate": "Intermediate - sentences for detailed conversations (6-15 words)",
    "advanced": "Advanced - complex grammar, idioms and professional or cultural registers",
}


class UpstreamError(RuntimeError):
    """Raised when the model provider fails or returns unusable content."""


def _usage_from_response(response: Any) -> Optional[TokenUsage]:
    usage = getattr(response, "usage", None)
    if usage is None:
        return None
    return TokenUsage(
        input_tokens=usage.prompt_tokens,
        output_tokens=usage.completion_tokens,
        total_tokens=usage.total_tokens
    )


def _word_meanings(raw: Any) -> List[WordMeaning]:
    return [
        WordMeaning(
            word=item["word"],
            meaning=item["meaning"],
            transliteration=item.get("transliteration")
        )
        for item in raw or []
    ]


class GeminiAdapter:
    """Adapter for Google Gemini models.

    The OpenAI client is created on first use so that listing models
    does not require an API key.
    """

    def __init__(
        self,
        info: ModelInfo,
        client: Optional[OpenAI] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.7
    ):
        """Initialize the adapter.

        Args:
            info: Catalog entry of the model to call
            client: Pre-built OpenAI client (optional, mainly for tests)
            api_key: Gemini API key; falls back to GEMINI_API_KEY
            temperature: Sampling temperature for every request

        Raises:
            ValueError: If the model is not a Google model
        """
        if info.provider != "google":
            raise ValueError(f"Model {info.id} is not a Google Gemini model")
        if not info.provider_model:
            raise ValueError(f"Model {info.id} is not configured with a Gemini identifier")

        self._info = info
        self._client = client
        self._api_key = api_key
        self.temperature = temperature

    @property
    def info(self) -> ModelInfo:
        return self._info

    @property
    def id(self) -> str:
        return self._info.id

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            api_key = self._api_key or os.environ.get(API_KEY_ENV_VAR)
            if not api_key:
                raise UpstreamError(f"{API_KEY_ENV_VAR} environment variable is required")
            self._client = OpenAI(api_key=api_key, base_url=GEMINI_OPENAI_BASE_URL)
        return self._client

    def generate_content(
        self,
        language_code: str,
        language_name: str,
        region: str,
        level: str,
        category: str,
        count: int = 5
    ) -> ModelResponse[List[LessonContent]]:
        region_context = _REGION_CONTEXTS.get(
            language_code, f"{region} - Local cultural context and practical daily communication"
        )
        prompt = f"""You generate practical, real-world sentences for language learners.

Language: {language_name} ({language_code})
Region: {region}
Level: {_LEVEL_DESCRIPTIONS.get(level, "General level")}
Category: {category}
Regional context: {region_context}

Generate {count} everyday sentences that locals in {region} actually use, appropriate for
{level} learners and focused on {category}.

Return ONLY a JSON object of this shape:
{{"items": [{{"english": "English sentence", "target": "Native script sentence",
"transliteration": "Roman script transliteration", "context": "When to use it"}}]}}"""

        payload, usage = self._complete_json(prompt, "generate content")
        items = self._parse("generate content", lambda: [
            LessonContent(
                english=item["english"],
                target=item["target"],
                transliteration=item.get("transliteration"),
                context=item.get("context")
            )
            for item in payload["items"]
        ])
        return ModelResponse(data=items, usage=usage)

    def translate_text(
        self, text: str, source_lang: str, target_lang: str
    ) -> ModelResponse[TranslationResult]:
        prompt = f"""Translate the following text from {source_lang} to {target_lang}.
Give the translation in native script and a transliteration in Roman script.

Text: "{text}"

Return ONLY a JSON object: {{"translation": "...", "transliteration": "..."}}"""

        payload, usage = self._complete_json(prompt, "translate")
        result = self._parse("translate", lambda: TranslationResult(
            translation=payload["translation"],
            transliteration=payload.get("transliteration")
        ))
        return ModelResponse(data=result, usage=usage)

    def translate_with_analysis(
        self, text: str, source_lang: str, target_lang: str, language_code: str
    ) -> ModelResponse[TranslationWithAnalysisResult]:
        prompt = f"""Translate the following text from {source_lang} to {target_lang} ({language_code})
for a language learner and break it down.

Text: "{text}"

Return ONLY a JSON object:
{{"translation": "native script", "transliteration": "Roman script",
"wordMeanings": [{{"word": "...", "meaning": "English meaning", "transliteration": "..."}}],
"quickTip": "a cultural or linguistic tip about this phrase"}}"""

        payload, usage = self._complete_json(prompt, "analyze translation")
        result = self._parse("analyze translation", lambda: TranslationWithAnalysisResult(
            translation=payload["translation"],
            transliteration=payload.get("transliteration"),
            word_meanings=_word_meanings(payload.get("wordMeanings")),
            quick_tip=payload.get("quickTip")
        ))
        return ModelResponse(data=result, usage=usage)

    def check_answer(
        self, user_answer: str, correct_answer: str, context: str, mode: str
    ) -> ModelResponse[CheckAnswerResult]:
        prompt = f"""You are a language tutor grading a student's answer.

Context: {context}
Mode: {mode}
Correct answer: "{correct_answer}"
Student's answer: "{user_answer}"

Judge accuracy, grammar, cultural appropriateness and practical usability.

Return ONLY a JSON object:
{{"isCorrect": true/false, "feedback": "encouraging, constructive feedback",
"score": 0-100}}"""

        payload, usage = self._complete_json(prompt, "check answer")
        result = self._parse("check answer", lambda: CheckAnswerResult(
            is_correct=bool(payload["isCorrect"]),
            feedback=payload["feedback"],
            score=float(payload["score"])
        ))
        return ModelResponse(data=result, usage=usage)

    def check_answer_detailed(
        self, user_answer: str, correct_answer: str, context: str, mode: str
    ) -> ModelResponse[CheckAnswerDetailedResult]:
        prompt = f"""You are a language tutor giving structured feedback.

Context: {context}
Mode: {mode}
Correct answer: "{correct_answer}"
Student's answer: "{user_answer}"

Answer in exactly three parts: what the student got right, the main point to improve,
and one specific hint.

Return ONLY a JSON object:
{{"whatsRight": "...", "mainPointToImprove": "...", "hint": "..."}}"""

        payload, usage = self._complete_json(prompt, "generate detailed feedback")
        result = self._parse("generate detailed feedback", lambda: CheckAnswerDetailedResult(
            whats_right=payload["whatsRight"],
            main_point_to_improve=payload["mainPointToImprove"],
            hint=payload["hint"]
        ))
        return ModelResponse(data=result, usage=usage)

    def analyze_words_for_learning(
        self, english_text: str, target_text: str, language_code: str
    ) -> ModelResponse[WordAnalysisResult]:
        """Word-by-word breakdown of a sentence pair.

        Raises:
            UpstreamError: If the provider fails or the reply is unusable
        """
        prompt = f"""Analyze this language learning pair:

English: "{english_text}"
Target ({language_code}): "{target_text}"

Give a word-by-word breakdown with meanings and transliteration, and one memorable quick tip
about the culture or linguistics behind the phrase (not a dry grammar rule).

Return ONLY a JSON object:
{{"wordMeanings": [{{"word": "...", "meaning": "...", "transliteration": "..."}}],
"quickTip": "..."}}"""

        payload, usage = self._complete_json(prompt, "analyze words")
        result = self._parse("analyze words", lambda: WordAnalysisResult(
            word_meanings=_word_meanings(payload.get("wordMeanings")),
            quick_tip=payload.get("quickTip")
        ))
        return ModelResponse(data=result, usage=usage)

    def _complete_json(self, prompt: str, what: str) -> Tuple[Dict[str, Any], Optional[TokenUsage]]:
        try:
            response = self.client.chat.completions.create(
                model=self._info.provider_model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                response_format={"type": "json_object"}
            )
        except OpenAIError as e:
            logger.error("Gemini request to %s failed: %s", self._info.provider_model, e)
            raise UpstreamError(f"Failed to {what}: {e}") from e

        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise UpstreamError(f"Failed to {what}: no content generated")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise UpstreamError(f"Failed to {what}: response is not valid JSON") from e
        if not isinstance(payload, dict):
            raise UpstreamError(f"Failed to {what}: expected a JSON object")

        return payload, _usage_from_response(response)

    @staticmethod
    def _parse(what: str, build: Callable[[], T]) -> T:
        try:
            return build()
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Failed to {what}: unexpected response shape ({e})") from e

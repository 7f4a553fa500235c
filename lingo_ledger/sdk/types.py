"""
Provider-agnostic types for talking to a generative model.
"""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, Protocol, TypeVar

from ..core.catalog import ModelInfo
from ..core.token_counter import TokenUsage

T = TypeVar("T")


@dataclass(frozen=True)
class LessonContent:
    """One practice sentence."""
    english: str
    target: str
    transliteration: Optional[str] = None
    context: Optional[str] = None


@dataclass(frozen=True)
class TranslationResult:
    translation: str
    transliteration: Optional[str] = None


@dataclass(frozen=True)
class WordMeaning:
    word: str
    meaning: str
    transliteration: Optional[str] = None


@dataclass(frozen=True)
class WordAnalysisResult:
    word_meanings: List[WordMeaning] = field(default_factory=list)
    quick_tip: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.word_meanings and not self.quick_tip


@dataclass(frozen=True)
class TranslationWithAnalysisResult:
    translation: str
    transliteration: Optional[str] = None
    word_meanings: List[WordMeaning] = field(default_factory=list)
    quick_tip: Optional[str] = None


@dataclass(frozen=True)
class CheckAnswerResult:
    is_correct: bool
    feedback: str
    score: float


@dataclass(frozen=True)
class CheckAnswerDetailedResult:
    whats_right: str
    main_point_to_improve: str
    hint: str


@dataclass(frozen=True)
class ModelResponse(Generic[T]):
    """Parsed payload plus whatever token usage the provider reported."""
    data: T
    usage: Optional[TokenUsage] = None


class ModelAdapter(Protocol):
    """What the app needs from a generative model."""

    @property
    def info(self) -> ModelInfo:
        ...

    @property
    def id(self) -> str:
        ...

    def generate_content(
        self,
        language_code: str,
        language_name: str,
        region: str,
        level: str,
        category: str,
        count: int = 5
    ) -> ModelResponse[List[LessonContent]]:
        ...

    def translate_text(
        self, text: str, source_lang: str, target_lang: str
    ) -> ModelResponse[TranslationResult]:
        ...

    def translate_with_analysis(
        self, text: str, source_lang: str, target_lang: str, language_code: str
    ) -> ModelResponse[TranslationWithAnalysisResult]:
        ...

    def check_answer(
        self, user_answer: str, correct_answer: str, context: str, mode: str
    ) -> ModelResponse[CheckAnswerResult]:
        ...

    def check_answer_detailed(
        self, user_answer: str, correct_answer: str, context: str, mode: str
    ) -> ModelResponse[CheckAnswerDetailedResult]:
        ...

    def analyze_words_for_learning(
        self, english_text: str, target_text: str, language_code: str
    ) -> ModelResponse[WordAnalysisResult]:
        ...

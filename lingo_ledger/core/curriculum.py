"""
Catalog of the languages and lessons the app teaches.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..sdk.types import LessonContent

LESSON_LEVELS = ("basic", "intermediate", "advanced")
LESSON_MODES = ("listen", "guide", "speak")


class LessonNotFoundError(LookupError):
    """Raised when a lesson id is not in the catalog."""

    def __init__(self, lesson_id: str):
        super().__init__(f"Lesson {lesson_id} not found")
        self.lesson_id = lesson_id


@dataclass(frozen=True)
class Language:
    id: str
    name: str
    native_name: str
    code: str
    region: str
    speakers: int
    description: str
    is_active: bool = True


@dataclass(frozen=True)
class Lesson:
    """A fixed set of practice sentences worth some XP per correct answer."""
    id: str
    language_id: str
    title: str
    category: str
    level: str
    mode: str
    content: Tuple[LessonContent, ...]
    duration_minutes: int
    order: int
    xp_reward: int = 10
    is_active: bool = True

    def __post_init__(self):
        if self.level not in LESSON_LEVELS:
            raise ValueError(f"Unknown lesson level: {self.level}")
        if self.mode not in LESSON_MODES:
            raise ValueError(f"Unknown lesson mode: {self.mode}")
        if self.xp_reward < 0:
            raise ValueError("xp_reward cannot be negative")

    def item(self, index: int) -> LessonContent:
        """Practice sentence by position.

        Raises:
            ValueError: If the index is outside the lesson
        """
        if not 0 <= index < len(self.content):
            raise ValueError(f"Lesson {self.id} has no item {index}")
        return self.content[index]


LANGUAGES: Dict[str, Language] = {
    "lang-kannada": Language(
        id="lang-kannada",
        name="Kannada",
        native_name="ಕನ್ನಡ",
        code="kn",
        region="Karnataka, India",
        speakers=44_000_000,
        description=(
            "Perfect for living and working in Bangalore, Mysore, and other Karnataka cities. "
            "Learn market phrases, workplace communication, and local customs."
        )
    ),
    "lang-hindi": Language(
        id="lang-hindi",
        name="Hindi",
        native_name="हिंदी",
        code="hi",
        region="All India",
        speakers=600_000_000,
        description=(
            "India's official language, essential for travel, business, and cultural "
            "connection across the country."
        )
    ),
}

LESSONS: Dict[str, Lesson] = {
    "lesson-1": Lesson(
        id="lesson-1",
        language_id="lang-kannada",
        title="Market Conversations",
        category="Shopping & Daily Life",
        level="basic",
        mode="listen",
        content=(
            LessonContent(
                english="How much does this cost?",
                target="ಇದು ಎಷ್ಟು ಬೆಲೆ?",
                transliteration="idu eshtu bele?",
                context="Used when asking for the price of items in markets or shops"
            ),
            LessonContent(
                english="It's too expensive",
                target="ಇದು ತುಂಬಾ ದುಬಾರಿ",
                transliteration="idu tumba dubari",
                context="Express that something costs too much"
            ),
        ),
        duration_minutes=5,
        order=1,
        xp_reward=10
    ),
    "lesson-2": Lesson(
        id="lesson-2",
        language_id="lang-kannada",
        title="Getting Around",
        category="Transport",
        level="basic",
        mode="speak",
        content=(
            LessonContent(
                english="Please go to Majestic",
                target="ದಯವಿಟ್ಟು ಮೆಜೆಸ್ಟಿಕ್‌ಗೆ ಹೋಗಿ",
                transliteration="dayavittu majestic-ge hogi",
                context="Telling an auto-rickshaw driver where to go"
            ),
        ),
        duration_minutes=5,
        order=2,
        xp_reward=15
    ),
    "lesson-3": Lesson(
        id="lesson-3",
        language_id="lang-hindi",
        title="Greetings",
        category="Basics",
        level="basic",
        mode="listen",
        content=(
            LessonContent(
                english="Hello, how are you?",
                target="नमस्ते, आप कैसे हैं?",
                transliteration="namaste, aap kaise hain?",
                context="Polite greeting for anyone you meet"
            ),
        ),
        duration_minutes=3,
        order=1,
        xp_reward=10
    ),
}


def list_languages() -> List[Language]:
    """Active languages in declaration order."""
    return [language for language in LANGUAGES.values() if language.is_active]


def get_language(language_id: str) -> Optional[Language]:
    return LANGUAGES.get(language_id)


def get_lesson(lesson_id: str) -> Lesson:
    """Look up a lesson.

    Raises:
        LessonNotFoundError: If the id is unknown
    """
    lesson = LESSONS.get(lesson_id)
    if lesson is None:
        raise LessonNotFoundError(lesson_id)
    return lesson


def get_lessons_by_language(
    language_id: str, level: Optional[str] = None, mode: Optional[str] = None
) -> List[Lesson]:
    """Active lessons of a language in teaching order."""
    lessons = [
        lesson for lesson in LESSONS.values()
        if lesson.language_id == language_id
        and lesson.is_active
        and (level is None or lesson.level == level)
        and (mode is None or lesson.mode == mode)
    ]
    return sorted(lessons, key=lambda lesson: lesson.order)


def get_current_lesson(language_id: str, mode: str, level: str = "basic") -> Optional[Lesson]:
    """First lesson for a language, mode and level; None if there is none."""
    lessons = get_lessons_by_language(language_id, level=level, mode=mode)
    return lessons[0] if lessons else None

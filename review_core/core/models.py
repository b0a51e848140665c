"""
Data models for the review core
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..utils import format_timestamp, parse_timestamp


class ReviewRating(str, Enum):
    """User review rating"""
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def parse(cls, value: "ReviewRating | str") -> "ReviewRating":
        """Convert a raw rating value, rejecting unknown ones"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Rating must be one of {[r.value for r in cls]}, got {value!r}"
            ) from None


class ActivityType(str, Enum):
    """Learning activity category"""
    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    READING = "reading"
    LISTENING = "listening"
    SPEAKING = "speaking"
    WRITING = "writing"


class CEFRLevel(str, Enum):
    """CEFR proficiency level"""
    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"
    C2 = "C2"


class DistractorDifficulty(str, Enum):
    """Difficulty band of fallback distractors"""
    SIMPLE = "simple"
    MODERATE = "moderate"
    ADVANCED = "advanced"


def _required_timestamp(data: dict[str, Any], *keys: str) -> datetime:
    for key in keys:
        if key in data:
            parsed = parse_timestamp(data[key])
            if parsed is None:
                raise ValueError(f"Malformed timestamp in field {key!r}: {data[key]!r}")
            return parsed
    raise ValueError(f"Missing timestamp field {keys[0]!r}")


def _pick(data: dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel, default)


@dataclass
class SrsState:
    """Scheduling state produced by a single review"""

    repetition: int
    ease_factor: float
    interval: int
    next_review_date: datetime
    updated_at: datetime


@dataclass
class SrsData:
    """Per-word scheduling record"""

    word_id: str
    repetition: int
    ease_factor: float
    interval: int
    next_review_date: datetime
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Serialize with ISO-8601 timestamps"""
        return {
            "word_id": self.word_id,
            "repetition": self.repetition,
            "ease_factor": self.ease_factor,
            "interval": self.interval,
            "next_review_date": format_timestamp(self.next_review_date),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SrsData":
        """Build a record from snake_case or camelCase keys"""
        word_id = _pick(data, "word_id", "wordId")
        if word_id is None:
            raise ValueError("Missing field 'word_id'")

        next_review = _required_timestamp(data, "next_review_date", "nextReviewDate")
        created_at = parse_timestamp(_pick(data, "created_at", "createdAt")) or next_review
        updated_at = parse_timestamp(_pick(data, "updated_at", "updatedAt")) or created_at

        return cls(
            word_id=str(word_id),
            repetition=int(_pick(data, "repetition", "repetition", 0)),
            ease_factor=float(_pick(data, "ease_factor", "easeFactor", 2.5)),
            interval=int(_pick(data, "interval", "interval", 0)),
            next_review_date=next_review,
            created_at=created_at,
            updated_at=updated_at,
        )


@dataclass
class ReviewItem:
    """A scheduling record paired with caller data (word, meaning, ...)"""

    record: SrsData
    payload: Any = None


@dataclass
class WrongAnswer:
    """A previously missed question"""

    id: str
    exercise_id: str
    type: ActivityType
    correct_answer: str
    user_answer: str
    mastered: bool = False
    consecutive_correct: int = 0
    question: str = ""
    lesson_id: str = ""
    attempted_at: datetime | None = None
    review_count: int = 0
    last_reviewed_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WrongAnswer":
        """Build a wrong answer from snake_case or camelCase keys"""
        return cls(
            id=str(data["id"]),
            exercise_id=str(_pick(data, "exercise_id", "exerciseId", "")),
            type=ActivityType(data["type"]),
            correct_answer=_pick(data, "correct_answer", "correctAnswer", ""),
            user_answer=_pick(data, "user_answer", "userAnswer", ""),
            mastered=bool(data.get("mastered", False)),
            consecutive_correct=int(_pick(data, "consecutive_correct", "consecutiveCorrect", 0)),
            question=data.get("question", ""),
            lesson_id=_pick(data, "lesson_id", "lessonId", ""),
            attempted_at=parse_timestamp(_pick(data, "attempted_at", "attemptedAt")),
            review_count=int(_pick(data, "review_count", "reviewCount", 0)),
            last_reviewed_at=parse_timestamp(_pick(data, "last_reviewed_at", "lastReviewedAt")),
        )


@dataclass
class ReviewSession:
    """A wrong answer review session"""

    id: str
    started_at: datetime
    wrong_answer_ids: list[str] = field(default_factory=list)
    completed_at: datetime | None = None
    correct_answers: int = 0

    @property
    def total_questions(self) -> int:
        return len(self.wrong_answer_ids)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass
class GeneratedOptions:
    """Multiple-choice options rebuilt from a wrong answer"""

    options: list[str] = field(default_factory=list)
    correct_index: int = -1
    user_wrong_index: int = -1

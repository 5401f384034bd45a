"""
Topic domain objects.

Implements:
- QuizItem: one multiple-choice question (exactly four options)
- GeneratedContent: what the generator produced for a title
- Topic: a stored unit of content scoped to an owner and category
- TopicMatch: result of comparing a requested title with stored topics

The persisted quiz JSON uses the keys ``question``, ``options``,
``correctAnswer`` and, when present, ``explanation``.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

WORDS_PER_MINUTE = 200

_OPTION_LETTER = re.compile(r"^\(?([A-Da-d])[).:]?$")


@dataclass
class QuizItem:
    """A single multiple-choice question."""

    OPTION_COUNT: ClassVar[int] = 4

    question: str
    options: list[str]
    correct_answer: str
    explanation: str = ""

    def is_valid(self) -> bool:
        """Four non-empty options, a question and a correct answer."""
        return (
            bool(self.question.strip())
            and len(self.options) == self.OPTION_COUNT
            and all(isinstance(o, str) and o.strip() for o in self.options)
            and bool(self.correct_answer.strip())
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
        }
        if self.explanation:
            data["explanation"] = self.explanation
        return data

    @classmethod
    def from_dict(cls, data: Any) -> QuizItem | None:
        """
        Build a quiz from model output or stored JSON.

        Accepts ``correct_answer`` or ``correctAnswer``. A bare option letter
        ("B", "b)", "(C)") is resolved to the option text. Returns None when
        the structure is not a valid four-option question.
        """
        if not isinstance(data, dict):
            return None

        options = data.get("options")
        if not isinstance(options, list):
            return None
        options = [str(o).strip() for o in options]

        answer = data.get("correctAnswer", data.get("correct_answer", ""))
        answer = str(answer).strip() if answer is not None else ""
        letter = _OPTION_LETTER.match(answer)
        if letter and len(options) == cls.OPTION_COUNT and answer not in options:
            answer = options["abcd".index(letter.group(1).lower())]

        quiz = cls(
            question=str(data.get("question") or "").strip(),
            options=options,
            correct_answer=answer,
            explanation=str(data.get("explanation") or "").strip(),
        )
        return quiz if quiz.is_valid() else None


def fallback_quiz(title: str = "this topic") -> QuizItem:
    """Canned question used when the model gave no usable quiz."""
    return QuizItem(
        question=f"What is the main concept of {title}?",
        options=[
            f"The primary principle of {title}",
            f"A fundamental aspect of {title}",
            f"The core concept in {title}",
            f"An important element of {title}",
        ],
        correct_answer=f"The primary principle of {title}",
        explanation=f"This question checks your understanding of {title}'s core concept.",
    )


@dataclass
class GeneratedContent:
    """Summary, key points and quiz produced for one title."""

    summary: str
    quiz: QuizItem
    key_points: list[str] = field(default_factory=list)
    is_fallback: bool = False

    @property
    def reading_time_minutes(self) -> int:
        return max(1, math.ceil(len(self.summary.split()) / WORDS_PER_MINUTE))

    @property
    def quiz_count(self) -> int:
        return 1


def fallback_content(title: str, category: str) -> GeneratedContent:
    """Static topic body returned when generation irrecoverably fails."""
    summary = (
        f"{title} is an important subject within {category}. "
        f"Content for this topic could not be generated right now, so this is a "
        f"placeholder overview. Try requesting {title} again later to get a full "
        f"explanation with practical examples."
    )
    return GeneratedContent(
        summary=summary,
        quiz=fallback_quiz(title),
        key_points=[
            f"{title} belongs to the {category} category",
            "Full content is temporarily unavailable",
        ],
        is_fallback=True,
    )


@dataclass
class Topic:
    """A stored topic."""

    id: int | None
    owner_id: int
    category: str
    title: str
    summary: str
    quiz: QuizItem
    key_points: list[str] = field(default_factory=list)
    reading_time_minutes: int = 1
    quiz_count: int = 1
    is_public: bool = False
    is_fallback: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_content(
        cls,
        owner_id: int,
        category: str,
        title: str,
        content: GeneratedContent,
        is_public: bool = False,
    ) -> Topic:
        return cls(
            id=None,
            owner_id=owner_id,
            category=category,
            title=title,
            summary=content.summary,
            quiz=content.quiz,
            key_points=list(content.key_points),
            reading_time_minutes=content.reading_time_minutes,
            quiz_count=content.quiz_count,
            is_public=is_public,
            is_fallback=content.is_fallback,
        )

    @property
    def stored_id(self) -> int:
        """Primary key of a persisted topic."""
        if self.id is None:
            raise ValueError(f"Topic '{self.title}' has not been saved")
        return self.id

    def to_content(self) -> GeneratedContent:
        return GeneratedContent(
            summary=self.summary,
            quiz=self.quiz,
            key_points=list(self.key_points),
            is_fallback=self.is_fallback,
        )


class MatchKind(str, Enum):
    """How a requested title relates to a user's existing topics."""

    EXACT = "exact"
    SIMILAR = "similar"
    NEW = "new"


@dataclass
class TopicMatch:
    """Classification of a requested title."""

    kind: MatchKind
    topic: Topic | None = None  # set for EXACT
    similar: list[Topic] = field(default_factory=list)  # most recent first

    @property
    def message(self) -> str:
        if self.kind == MatchKind.EXACT:
            return "This exact topic already exists"
        if self.kind == MatchKind.SIMILAR:
            return f"Found {len(self.similar)} similar topics"
        return "This is a new topic"

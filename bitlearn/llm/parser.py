"""
Structured extraction from free-form model output.

Model answers are expected to hold JSON but often arrive wrapped in Markdown
fences, truncated, or with unescaped text around the object. Parsing runs an
ordered chain of pure strategies (``text -> ParseOutcome``); the first
strategy whose value also passes validation wins. Nothing raises past
``ResponseParser``: callers get a structured value, a documented fallback,
or the ``UNAVAILABLE`` sentinel.
"""
from __future__ import annotations

import json
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from loguru import logger

from bitlearn.topics.models import GeneratedContent, QuizItem, fallback_quiz
from bitlearn.verification.models import JudgeScore


class _Unavailable:
    """Sentinel for 'nothing usable could be parsed'."""

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __bool__(self) -> bool:
        return False


UNAVAILABLE = _Unavailable()


@dataclass(frozen=True)
class ParseOutcome:
    """Result of a single strategy: a value or an error, never both."""

    value: Any = None
    error: str | None = None
    strategy: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any, strategy: str) -> ParseOutcome:
        return cls(value=value, strategy=strategy)

    @classmethod
    def failure(cls, error: str, strategy: str) -> ParseOutcome:
        return cls(error=error, strategy=strategy)


Strategy = Callable[[str], ParseOutcome]

_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_SCORE = re.compile(r'"score"\s*:\s*"?(\d+(?:\.\d+)?)')
_STRING = r'"((?:[^"\\]|\\.)*)"'
_ARRAY = r"\[(.*?)\]"


def clean_response(text: str) -> str:
    """Strip code fences and newlines."""
    cleaned = _FENCE.sub("", text or "")
    return cleaned.replace("\r", " ").replace("\n", " ").strip()


def _unescape(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except json.JSONDecodeError:
        return raw.replace('\\"', '"')


def _string_field(text: str, *names: str) -> str | None:
    for name in names:
        match = re.search(rf'"{name}"\s*:\s*{_STRING}', text)
        if match:
            return _unescape(match.group(1)).strip()
    return None


def _array_field(text: str, name: str) -> list[str] | None:
    match = re.search(rf'"{name}"\s*:\s*{_ARRAY}', text, re.DOTALL)
    if not match:
        return None
    return [_unescape(item).strip() for item in re.findall(_STRING, match.group(1))]


# =============================================================================
# Strategies
# =============================================================================


def strict_json(text: str) -> ParseOutcome:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return ParseOutcome.failure(str(e), "strict_json")
    if not isinstance(data, dict):
        return ParseOutcome.failure("top-level value is not an object", "strict_json")
    return ParseOutcome.success(data, "strict_json")


def embedded_object(text: str) -> ParseOutcome:
    match = _OBJECT.search(text)
    if not match:
        return ParseOutcome.failure("no object found", "embedded_object")
    outcome = strict_json(match.group(0))
    return ParseOutcome(outcome.value, outcome.error, "embedded_object")


def score_field(text: str) -> ParseOutcome:
    match = _SCORE.search(text)
    if not match:
        return ParseOutcome.failure("no score field", "score_field")
    return ParseOutcome.success(
        {"score": match.group(1), "feedback": "Score extracted from response"},
        "score_field",
    )


def named_fields(text: str) -> ParseOutcome:
    data: dict[str, Any] = {}
    summary = _string_field(text, "summary")
    if summary:
        data["summary"] = summary
    key_points = _array_field(text, "key_points")
    if key_points:
        data["key_points"] = key_points

    quiz: dict[str, Any] = {}
    question = _string_field(text, "question")
    if question:
        quiz["question"] = question
    options = _array_field(text, "options")
    if options:
        quiz["options"] = options
    answer = _string_field(text, "correct_answer", "correctAnswer")
    if answer:
        quiz["correct_answer"] = answer
    if quiz:
        data["quiz"] = quiz

    if not data:
        return ParseOutcome.failure("no named fields found", "named_fields")
    return ParseOutcome.success(data, "named_fields")


SCORE_STRATEGIES: tuple[Strategy, ...] = (strict_json, embedded_object, score_field)
CONTENT_STRATEGIES: tuple[Strategy, ...] = (strict_json, embedded_object, named_fields)
QUIZ_STRATEGIES: tuple[Strategy, ...] = (strict_json, embedded_object, named_fields)


# =============================================================================
# Validation
# =============================================================================


def coerce_score(value: Any) -> int | None:
    """Return an int in 1..10, or None for anything else (including 0)."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = int(Decimal(str(value).strip()).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (ArithmeticError, ValueError):
        return None
    return score if 1 <= score <= 10 else None


def _quiz_source(data: dict[str, Any]) -> Any:
    return data.get("quiz", data)


class ResponseParser:
    """Runs the strategy chains and converts the winner into domain objects."""

    def _run_chain(
        self,
        text: str,
        strategies: Sequence[Strategy],
        convert: Callable[[Any], Any],
        label: str,
    ) -> ParseOutcome:
        cleaned = clean_response(text)
        errors = []
        for strategy in strategies:
            outcome = strategy(cleaned)
            if outcome.ok:
                value = convert(outcome.value)
                if value is not None:
                    logger.debug(f"{label}: parsed with {outcome.strategy}")
                    return ParseOutcome.success(value, outcome.strategy)
                errors.append(f"{outcome.strategy}: value failed validation")
            else:
                errors.append(f"{outcome.strategy}: {outcome.error}")
        logger.warning(f"{label}: all parse strategies failed ({'; '.join(errors)})")
        return ParseOutcome.failure("; ".join(errors), "none")

    def parse_score(self, text: str, model: str = "", label: str = "judge") -> JudgeScore:
        """Parse a judge answer; unparseable answers give ``score=None``."""

        def convert(data: Any) -> JudgeScore | None:
            if not isinstance(data, dict):
                return None
            score = coerce_score(data.get("score"))
            if score is None:
                return None
            return JudgeScore(score=score, feedback=str(data.get("feedback") or ""), model=model)

        outcome = self._run_chain(text, SCORE_STRATEGIES, convert, label)
        if outcome.ok:
            return outcome.value
        return JudgeScore(score=None, feedback=f"Score unavailable: {label} response could not be parsed", model=model)

    def parse_quiz(self, text: str) -> QuizItem | _Unavailable:
        def convert(data: Any) -> QuizItem | None:
            return QuizItem.from_dict(_quiz_source(data)) if isinstance(data, dict) else None

        outcome = self._run_chain(text, QUIZ_STRATEGIES, convert, "quiz")
        return outcome.value if outcome.ok else UNAVAILABLE

    def parse_content(self, text: str, title: str = "this topic") -> GeneratedContent | _Unavailable:
        """
        Parse generated topic content.

        A recovered summary with a missing or malformed quiz keeps the
        summary and gets the canned quiz; without a summary the result is
        ``UNAVAILABLE``.
        """

        def convert(data: Any) -> GeneratedContent | None:
            if not isinstance(data, dict):
                return None
            summary = data.get("summary")
            if not isinstance(summary, str) or not summary.strip():
                return None

            quiz = QuizItem.from_dict(_quiz_source(data))
            if quiz is None:
                logger.warning(f"Quiz for '{title}' missing or malformed, using canned quiz")
                quiz = fallback_quiz(title)

            key_points = data.get("key_points") or data.get("keyPoints") or []
            if not isinstance(key_points, list):
                key_points = []
            return GeneratedContent(
                summary=summary.strip(),
                quiz=quiz,
                key_points=[str(kp).strip() for kp in key_points if str(kp).strip()],
            )

        outcome = self._run_chain(text, CONTENT_STRATEGIES, convert, f"content '{title}'")
        return outcome.value if outcome.ok else UNAVAILABLE

    @staticmethod
    def stringify_quiz(quiz: QuizItem) -> str:
        """Render a quiz the way a model typically answers (fenced JSON)."""
        return "```json\n" + json.dumps(quiz.to_dict(), indent=2) + "\n```"

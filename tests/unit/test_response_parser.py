"""
Unit tests for the response parser strategy chains.
"""

import json

import pytest

from bitlearn.llm.parser import (
    UNAVAILABLE,
    ResponseParser,
    clean_response,
    coerce_score,
    embedded_object,
    named_fields,
    score_field,
    strict_json,
)
from bitlearn.topics.models import QuizItem
from conftest import content_answer


@pytest.fixture
def parser():
    return ResponseParser()


@pytest.fixture
def sample_quiz():
    return QuizItem(
        question="Which layer of a network learns features?",
        options=["Hidden layer", "Power supply", "Keyboard", "Monitor"],
        correct_answer="Hidden layer",
        explanation="Hidden layers transform inputs into features.",
    )


class TestCleanResponse:
    def test_strips_fences_and_newlines(self):
        raw = '```json\n{"score": 8,\n "feedback": "ok"}\n```'
        assert clean_response(raw) == '{"score": 8,  "feedback": "ok"}'

    def test_none_is_empty(self):
        assert clean_response(None) == ""


class TestStrategies:
    def test_strict_json_rejects_arrays(self):
        outcome = strict_json("[1, 2]")
        assert not outcome.ok
        assert outcome.strategy == "strict_json"

    def test_embedded_object_finds_json_in_prose(self):
        outcome = embedded_object('Sure! Here is my rating: {"score": 6} Hope it helps.')
        assert outcome.ok
        assert outcome.value == {"score": 6}

    def test_score_field_recovers_truncated_answer(self):
        outcome = score_field('{"score": 7, "feedback": "Accurate but the explanation is cut')
        assert outcome.ok
        assert outcome.value["score"] == "7"

    def test_named_fields_recovers_broken_content(self):
        broken = (
            '{"summary": "Photosynthesis turns light into \\"chemical\\" energy.", '
            '"key_points": ["Uses chlorophyll", "Releases oxygen"], '
            '"quiz": {"question": "What gas is released?", '
            '"options": ["Oxygen", "Helium", "Neon", "Argon"], "correct_answer": "Oxygen"'
        )
        outcome = named_fields(broken)

        assert outcome.ok
        assert outcome.value["summary"] == 'Photosynthesis turns light into "chemical" energy.'
        assert outcome.value["key_points"] == ["Uses chlorophyll", "Releases oxygen"]
        assert outcome.value["quiz"]["options"] == ["Oxygen", "Helium", "Neon", "Argon"]

    def test_named_fields_fails_on_plain_prose(self):
        assert not named_fields("I cannot help with that.").ok


class TestCoerceScore:
    @pytest.mark.parametrize(
        "value,expected",
        [(8, 8), ("9", 9), (7.5, 8), ("6.4", 6), (1, 1), (10, 10)],
    )
    def test_valid_scores(self, value, expected):
        assert coerce_score(value) == expected

    @pytest.mark.parametrize("value", [0, -3, 11, "high", None, True, "NaN", ""])
    def test_invalid_scores_are_none(self, value):
        assert coerce_score(value) is None


class TestParseScore:
    def test_plain_json(self, parser):
        result = parser.parse_score('{"score": 8, "feedback": "Accurate"}', model="judge-model")

        assert result.score == 8
        assert result.feedback == "Accurate"
        assert result.model == "judge-model"

    def test_fenced_json(self, parser):
        result = parser.parse_score('```json\n{"score": "9", "feedback": "Great"}\n```')
        assert result.score == 9

    def test_score_field_fallback(self, parser, log_messages):
        result = parser.parse_score('{"score": 6, "feedback": "The text says "neurons" fire')

        assert result.score == 6
        assert result.feedback == "Score extracted from response"
        assert any("parsed with score_field" in m for m in log_messages)

    def test_out_of_range_score_is_unavailable(self, parser):
        result = parser.parse_score('{"score": 0, "feedback": "n/a"}')
        assert result.score is None

    def test_garbage_is_unavailable(self, parser, log_messages):
        result = parser.parse_score("I'd rather not rate this.", label="Factual Accuracy Check")

        assert result.score is None
        assert result.feedback.startswith("Score unavailable")
        assert any("all parse strategies failed" in m for m in log_messages)


class TestParseQuiz:
    def test_letter_answer_resolves_to_option(self, parser):
        raw = json.dumps(
            {
                "question": "Q?",
                "options": ["Alpha", "Beta", "Gamma", "Delta"],
                "correct_answer": "C",
            }
        )
        quiz = parser.parse_quiz(raw)
        assert quiz.correct_answer == "Gamma"

    def test_wrong_option_count_is_unavailable(self, parser):
        raw = json.dumps({"question": "Q?", "options": ["A", "B", "C"], "correct_answer": "A"})
        assert parser.parse_quiz(raw) is UNAVAILABLE

    def test_nested_quiz_key(self, parser):
        quiz = parser.parse_quiz(content_answer())
        assert quiz.question == "What do neural networks learn during training?"

    def test_stringify_then_parse_preserves_quiz(self, parser, sample_quiz):
        assert parser.parse_quiz(ResponseParser.stringify_quiz(sample_quiz)) == sample_quiz

    @pytest.mark.parametrize(
        "quiz",
        [
            QuizItem(
                question="What does a gradient point towards?",
                options=["Steepest ascent", "Steepest descent", "The origin", "Nowhere"],
                correct_answer="Steepest ascent",
            ),
            QuizItem(
                question='Which literal is a JSON object: "{}" or "[]"?',
                options=['"{}"', '"[]"', "{\"key\": [1, 2]}", "a \\ backslash"],
                correct_answer='"{}"',
                explanation="Braces delimit objects; brackets delimit arrays.",
            ),
            QuizItem(
                question="Qu'est-ce que la photosynthèse produit ? 光合成",
                options=["Oxygène", "Hélium", "Néon", "α-particules"],
                correct_answer="Oxygène",
                explanation="Les plantes libèrent de l'oxygène 🌱",
            ),
            QuizItem(
                question="First line\nsecond line?",
                options=["A", "B", "C", "D"],
                correct_answer="C",
                explanation="Single letters that are options stay as written.",
            ),
        ],
        ids=["no-explanation", "quotes-and-braces", "non-ascii", "letter-options"],
    )
    def test_round_trip_for_well_formed_quizzes(self, parser, quiz):
        assert quiz.is_valid()
        assert parser.parse_quiz(ResponseParser.stringify_quiz(quiz)) == quiz


class TestParseContent:
    def test_well_formed_content(self, parser):
        content = parser.parse_content(content_answer(), "Neural Networks")

        assert content.summary.startswith("Neural networks")
        assert content.key_points == ["Layers transform inputs", "Weights are learned"]
        assert content.quiz.correct_answer == "Weights"
        assert content.is_fallback is False

    def test_invalid_quiz_gets_canned_quiz(self, parser):
        raw = content_answer(options=("Only", "Three", "Options"))
        content = parser.parse_content(raw, "Neural Networks")

        assert content.summary.startswith("Neural networks")
        assert content.quiz.question == "What is the main concept of Neural Networks?"
        assert content.quiz.is_valid()
        assert content.is_fallback is False

    def test_missing_summary_is_unavailable(self, parser):
        raw = json.dumps({"key_points": ["a"], "quiz": {}})
        assert parser.parse_content(raw, "Neural Networks") is UNAVAILABLE

    def test_prose_is_unavailable(self, parser):
        assert parser.parse_content("Sorry, I can't do that.", "Anything") is UNAVAILABLE

    def test_truncated_content_recovered_field_by_field(self, parser):
        truncated = content_answer()[:-12]
        content = parser.parse_content(truncated, "Neural Networks")

        assert content is not UNAVAILABLE
        assert content.summary.startswith("Neural networks")

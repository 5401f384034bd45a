"""Topic domain objects, duplicate detection and version naming."""
from bitlearn.topics.matcher import TopicMatcher, classify_title
from bitlearn.topics.models import (
    GeneratedContent,
    MatchKind,
    QuizItem,
    Topic,
    TopicMatch,
    fallback_content,
    fallback_quiz,
)
from bitlearn.topics.versioning import next_version_number, versioned_title

__all__ = [
    "GeneratedContent",
    "MatchKind",
    "QuizItem",
    "Topic",
    "TopicMatch",
    "TopicMatcher",
    "classify_title",
    "fallback_content",
    "fallback_quiz",
    "next_version_number",
    "versioned_title",
]

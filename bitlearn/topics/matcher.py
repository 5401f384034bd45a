"""
Duplicate and near-duplicate detection for requested topic titles.

Titles are compared case-insensitively against the owner's topics in the
same category:

1. exact   - identical titles; the stored topic is reused
2. similar - one title contains the other, or they share a word
3. new     - anything else

The heuristic is deliberately string-based; it can flag "Introduction to
Python" and "Introduction to Cooking" as similar.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from loguru import logger

from .models import MatchKind, Topic, TopicMatch


class TopicSource(Protocol):
    async def list_topics(self, owner_id: int, category: str) -> list[Topic]:
        """Owner's topics in a category, most recently created first."""
        ...


def _normalize(title: str) -> str:
    return " ".join(title.lower().split())


def _words(title: str) -> set[str]:
    return set(title.lower().split())


def is_exact(requested: str, existing: str) -> bool:
    return _normalize(requested) == _normalize(existing)


def is_similar(requested: str, existing: str) -> bool:
    """Substring containment either way, or at least one shared word."""
    a, b = _normalize(requested), _normalize(existing)
    if not a or not b:
        return False
    if a in b or b in a:
        return True
    return bool(_words(a) & _words(b))


def classify_title(title: str, topics: Sequence[Topic]) -> TopicMatch:
    """
    Classify a requested title against existing topics.

    Args:
        title: Requested title
        topics: Existing topics for the same owner and category

    Returns:
        TopicMatch; ``similar`` is ordered most recent first
    """
    ordered = sorted(topics, key=lambda t: t.created_at, reverse=True)

    for topic in ordered:
        if is_exact(title, topic.title):
            return TopicMatch(kind=MatchKind.EXACT, topic=topic)

    similar = [t for t in ordered if is_similar(title, t.title)]
    if similar:
        return TopicMatch(kind=MatchKind.SIMILAR, similar=similar)

    return TopicMatch(kind=MatchKind.NEW)


class TopicMatcher:
    """Loads the owner's topics and classifies a requested title."""

    def __init__(self, source: TopicSource):
        self.source = source

    async def match(self, owner_id: int, category: str, title: str) -> TopicMatch:
        topics = await self.source.list_topics(owner_id, category)
        result = classify_title(title, topics)
        logger.info(
            f"Topic match for owner={owner_id} category='{category}' title='{title}': "
            f"{result.kind.value} ({result.message})"
        )
        return result

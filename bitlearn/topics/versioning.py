"""
Version numbering and naming for near-duplicate topics.

Pure functions of (base title, version number, similar topics); the same
inputs always give the same title.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .models import Topic

SUFFIX_WORDS = ("Basics", "Fundamentals", "Advanced", "Essentials", "Core", "Principles")
PREFIX_PHRASES = ("Introduction to", "Understanding", "Mastering", "Exploring", "Learning")
DESCRIPTIVE_SUFFIXES = (
    "Advanced Concepts",
    "Practical Applications",
    "Real-World Examples",
    "Deep Dive",
    "Comprehensive Guide",
    "Essential Principles",
    "Core Fundamentals",
    "Expert Insights",
)

_VERSION_TAG = re.compile(r"\(v(\d+)\)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class NamingPattern:
    suffix: str | None = None
    prefix: str | None = None


def title_version(title: str) -> int:
    """Version carried by a trailing ``(vN)`` tag; 1 when there is none."""
    match = _VERSION_TAG.search(title)
    return int(match.group(1)) if match else 1


def next_version_number(similar: Sequence[Topic]) -> int:
    """Highest version among *all* similar topics, plus one."""
    if not similar:
        return 1
    versions = [title_version(t.title) for t in similar]
    return max(versions) + 1 if versions else 2


def extract_naming_pattern(similar: Sequence[Topic]) -> NamingPattern:
    """
    Find the suffix word and prefix phrase used by similar titles.

    Titles are scanned in the given order (most recent first); the first
    title containing a suffix word decides the suffix, and likewise for the
    prefix.
    """
    suffix: str | None = None
    prefix: str | None = None

    for topic in similar:
        name = topic.title.lower()
        if suffix is None:
            suffix = next((s for s in SUFFIX_WORDS if s.lower() in name), None)
        if prefix is None:
            prefix = next((p for p in PREFIX_PHRASES if p.lower() in name), None)
        if suffix and prefix:
            break

    return NamingPattern(suffix=suffix, prefix=prefix)


def versioned_title(base_title: str, version_number: int, similar: Sequence[Topic] = ()) -> str:
    """Human-readable title for version N of ``base_title``."""
    if version_number <= 1:
        return base_title

    pattern = extract_naming_pattern(similar)
    if pattern.suffix:
        return f"{base_title} {pattern.suffix} (v{version_number})"
    if pattern.prefix:
        return f"{pattern.prefix} {base_title} (v{version_number})"

    descriptive = DESCRIPTIVE_SUFFIXES[(version_number - 2) % len(DESCRIPTIVE_SUFFIXES)]
    return f"{base_title} - {descriptive} (v{version_number})"

"""
LLM Prompts for Topic Generation.

Contains:
- The educator system prompt (with version-awareness for v2+ topics)
- The accuracy-focused variant used for the single regeneration attempt
- The user message that asks for a topic

All prompts ask for the same JSON shape:
    {"summary": ..., "key_points": [...], "quiz": {"question", "options", "correct_answer"}}
"""
from __future__ import annotations

from collections.abc import Sequence

# =============================================================================
# Output Format (shared)
# =============================================================================

OUTPUT_FORMAT = """Format your response as JSON:
{
  "summary": "A comprehensive but concise explanation of the topic with practical applications and real-world examples (2-3 paragraphs). Focus on how this knowledge can be applied in everyday situations.",
  "key_points": ["Key point 1", "Key point 2", "Key point 3", "Key point 4"],
  "quiz": {
    "question": "A practical question that tests understanding of how to apply this knowledge in real life",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correct_answer": "The correct option"
  }
}
Return only the JSON object. The quiz must have exactly four options and the
correct_answer must repeat the text of one of them."""

# =============================================================================
# System Prompts
# =============================================================================

EDUCATOR_PROMPT = """You are an expert educator specializing in {category}. Create engaging, educational content that is:
1. Clear and easy to understand for everyday learners
2. Practical and immediately applicable to daily life
3. Includes real-world examples and actionable insights
4. Focuses on skills and knowledge that improve quality of life
5. Encourages curiosity and further learning"""

VERSION_PROMPT = """

This is version {version_number} of "{title}". Please ensure this content:
- Provides different perspectives or approaches from previous versions
- Covers new aspects or applications of the topic
- Builds upon but doesn't repeat previous content
- Offers fresh examples and insights"""

PREVIOUS_VERSIONS_PROMPT = """
Previous versions already written for this learner:
{previous}"""

ACCURACY_PROMPT = """

A previous draft of this topic scored poorly with reviewers. This time:
- State only facts you are confident are correct; leave out anything uncertain
- Prefer precise, verifiable statements over broad generalisations
- Keep the explanation well structured: definition, how it works, one concrete example
- Make the quiz question unambiguous, with exactly one defensible correct option"""

MAX_PREVIOUS_TITLES = 5


# =============================================================================
# Prompt Factory
# =============================================================================


def get_system_prompt(
    title: str,
    category: str,
    version_number: int = 1,
    previous_titles: Sequence[str] = (),
    accuracy_focused: bool = False,
) -> str:
    """
    Build the system prompt for content generation.

    Args:
        title: Base title requested by the learner
        category: Category the topic belongs to
        version_number: 1 for new topics, N for the Nth variant
        previous_titles: Titles of the similar topics, most recent first
        accuracy_focused: Use the stricter regeneration instructions

    Returns:
        Formatted prompt string
    """
    prompt = EDUCATOR_PROMPT.format(category=category)

    if version_number > 1:
        prompt += VERSION_PROMPT.format(version_number=version_number, title=title)
        if previous_titles:
            previous = "\n".join(f"- {t}" for t in list(previous_titles)[:MAX_PREVIOUS_TITLES])
            prompt += PREVIOUS_VERSIONS_PROMPT.format(previous=previous)

    if accuracy_focused:
        prompt += ACCURACY_PROMPT

    return f"{prompt}\n\n{OUTPUT_FORMAT}"


def get_user_prompt(title: str, category: str, version_number: int = 1) -> str:
    """Get the user message asking for a topic."""
    message = f'Create educational content about "{title}" in the context of {category}.'
    if version_number > 1:
        message += (
            f" This is version {version_number}, so provide different perspectives or approaches."
        )
    return message

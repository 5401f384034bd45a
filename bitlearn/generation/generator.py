"""
Topic content generator.

One chat completion per topic: build the (optionally version-aware or
accuracy-focused) prompt, call the endpoint through ``ApiCaller`` and parse
the answer. When the endpoint exhausts its retries, or the answer holds no
usable summary, the static fallback body is returned with ``is_fallback``
set so callers can keep it out of storage.
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx
from loguru import logger

from bitlearn.config import JudgeModels, TimeoutTable
from bitlearn.llm.client import ApiCaller, ChatRequest, LLMResponseError
from bitlearn.llm.parser import UNAVAILABLE, ResponseParser
from bitlearn.topics.models import GeneratedContent, fallback_content

from .prompts import get_system_prompt, get_user_prompt


class ContentGenerator:
    """Writes summary, key points and quiz for a title."""

    def __init__(
        self,
        caller: ApiCaller,
        parser: ResponseParser | None = None,
        models: JudgeModels | None = None,
        timeouts: TimeoutTable | None = None,
    ):
        self.caller = caller
        self.parser = parser or ResponseParser()
        self.models = models or JudgeModels()
        self.timeouts = timeouts or TimeoutTable()

    async def generate(
        self,
        title: str,
        category: str,
        version_number: int = 1,
        previous_titles: Sequence[str] = (),
        accuracy_focused: bool = False,
    ) -> GeneratedContent:
        """
        Generate content for a topic.

        Args:
            title: Base title requested by the learner
            category: Topic category
            version_number: Version being written (prompts differ for v2+)
            previous_titles: Similar titles the new version must differ from
            accuracy_focused: Use the stricter regeneration prompt

        Returns:
            Parsed content, or the fallback body (``is_fallback=True``)
        """
        request = ChatRequest.from_prompts(
            model=self.models.generator,
            system=get_system_prompt(
                title=title,
                category=category,
                version_number=version_number,
                previous_titles=previous_titles,
                accuracy_focused=accuracy_focused,
            ),
            user=get_user_prompt(title, category, version_number),
            timeout=self.timeouts.for_operation("long"),
        )
        operation = "Accuracy-Focused Regeneration" if accuracy_focused else "Content Generation"

        try:
            raw = await self.caller.call(request, operation)
        except (httpx.HTTPError, LLMResponseError) as e:
            logger.error(f"{operation} for '{title}' failed after retries: {e}")
            return fallback_content(title, category)

        content = self.parser.parse_content(raw, title)
        if content is UNAVAILABLE:
            logger.error(f"{operation} for '{title}' returned no usable content, using fallback")
            return fallback_content(title, category)
        return content

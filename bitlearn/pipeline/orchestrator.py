"""
Generate-or-reuse pipeline for learning topics.

Pipeline for ``generate(owner_id, category, title)``:
1. Match the title against the owner's topics in the category
2. Exact match -> return the stored topic (no LLM calls)
3. Similar match -> compute the next version number and versioned title
4. Generate content (version-aware prompt for v2+)
5. Verify with the three judges
6. Below the quality threshold -> regenerate once with an accuracy-focused
   prompt, verify again, keep the better of the two (ties keep the first)
7. Decide publication and persist topic + verification

``store_topic`` covers content that was written elsewhere: it is verified
(unless scores are supplied), gated and persisted the same way.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from loguru import logger

from bitlearn.config import QualityThresholds, Settings, get_settings
from bitlearn.generation.generator import ContentGenerator
from bitlearn.llm.client import ApiCaller, ChatCompletionClient, LLMNotConfiguredError
from bitlearn.llm.parser import ResponseParser
from bitlearn.topics.matcher import TopicMatcher
from bitlearn.topics.models import (
    GeneratedContent,
    MatchKind,
    QuizItem,
    Topic,
    fallback_quiz,
)
from bitlearn.topics.versioning import next_version_number, title_version, versioned_title
from bitlearn.verification.judges import build_judges
from bitlearn.verification.models import VerificationResult
from bitlearn.verification.publication import (
    PrivacyOverride,
    decide_visibility,
    effective_visibility,
)
from bitlearn.verification.verifier import ContentVerifier


class TopicStore(Protocol):
    async def list_topics(self, owner_id: int, category: str | None = None) -> list[Topic]: ...

    async def get_verification(self, topic_id: int) -> VerificationResult | None: ...

    async def get_privacy_override(self, topic_id: int) -> PrivacyOverride | None: ...

    async def save_topic(self, topic: Topic, verification: VerificationResult) -> Topic: ...


@dataclass
class GenerationOutcome:
    """What ``generate`` hands back to the caller."""

    topic_id: int | None
    title: str
    content: GeneratedContent
    version_number: int
    is_new_version: bool
    verification: VerificationResult | None
    is_public: bool
    reused: bool = False
    similar_titles: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return self.content.summary

    @property
    def key_points(self) -> list[str]:
        return self.content.key_points

    @property
    def quiz(self) -> QuizItem:
        return self.content.quiz

    @property
    def is_fallback(self) -> bool:
        return self.content.is_fallback

    def to_dict(self) -> dict[str, Any]:
        return {
            "topicId": self.topic_id,
            "topic": self.title,
            "summary": self.summary,
            "keyPoints": self.key_points,
            "quiz": self.quiz.to_dict(),
            "readingTimeMinutes": self.content.reading_time_minutes,
            "versionNumber": self.version_number,
            "isNewVersion": self.is_new_version,
            "verificationResults": self.verification.to_dict() if self.verification else None,
            "isPublic": self.is_public,
            "isFallback": self.is_fallback,
            "reused": self.reused,
        }


@dataclass
class StoreOutcome:
    """What ``store_topic`` hands back to the caller."""

    topic_id: int
    is_public: bool
    verification: VerificationResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "topicId": self.topic_id,
            "isPublic": self.is_public,
            "verificationResults": self.verification.to_dict(),
        }


def _quality_rank(result: VerificationResult) -> int:
    return result.overall_quality or 0


class TopicOrchestrator:
    """Composes matching, versioning, generation, verification and storage."""

    def __init__(
        self,
        repository: TopicStore,
        generator: ContentGenerator,
        verifier: ContentVerifier,
        thresholds: QualityThresholds | None = None,
        client: ChatCompletionClient | None = None,
        ai_configured: bool = True,
    ):
        self.repository = repository
        self.matcher = TopicMatcher(repository)
        self.generator = generator
        self.verifier = verifier
        self.thresholds = thresholds or QualityThresholds()
        self._client = client
        self.ai_configured = ai_configured

    @classmethod
    def from_settings(
        cls,
        repository: TopicStore,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> TopicOrchestrator:
        """Wire every component from one explicit settings object."""
        settings = settings or get_settings()
        client = ChatCompletionClient(
            base_url=settings.llm_base_url,
            api_key=settings.openrouter_api_key,
            http_client=http_client,
        )
        caller = ApiCaller(client, settings.get_retry_policy())
        parser = ResponseParser()
        models = settings.get_judge_models()
        timeouts = settings.get_timeout_table()
        thresholds = settings.get_quality_thresholds()
        return cls(
            repository=repository,
            generator=ContentGenerator(caller, parser, models, timeouts),
            verifier=ContentVerifier(
                caller,
                parser,
                judges=build_judges(models),
                timeouts=timeouts,
                thresholds=thresholds,
                parallel=settings.parallel_judges,
            ),
            thresholds=thresholds,
            client=client,
            ai_configured=settings.has_ai_configured(),
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    def _require_ai(self, title: str) -> None:
        if not self.ai_configured:
            raise LLMNotConfiguredError(f"OPENROUTER_API_KEY is not set; cannot generate or verify '{title}'")

    # =========================================================================
    # generate
    # =========================================================================

    async def generate(self, owner_id: int, category: str, title: str) -> GenerationOutcome:
        """
        Return existing content for an exact title, or generate a new version.

        Args:
            owner_id: Learner the topic belongs to
            category: Topic category
            title: Requested title

        Returns:
            GenerationOutcome; ``topic_id`` is None only for fallback content,
            which is never stored

        Raises:
            LLMNotConfiguredError: If no API key is configured and the title
                is not an exact match
        """
        match = await self.matcher.match(owner_id, category, title)

        if match.kind == MatchKind.EXACT and match.topic is not None:
            return await self._reuse(match.topic)

        self._require_ai(title)

        version_number = 1
        display_title = title
        similar_titles: list[str] = []
        if match.kind == MatchKind.SIMILAR:
            version_number = next_version_number(match.similar)
            display_title = versioned_title(title, version_number, match.similar)
            similar_titles = [t.title for t in match.similar]
            logger.info(f"Creating version {version_number} of '{title}' as '{display_title}'")

        content = await self.generator.generate(
            title, category, version_number=version_number, previous_titles=similar_titles
        )
        if content.is_fallback:
            logger.error(f"Returning fallback content for '{display_title}' (not stored)")
            return GenerationOutcome(
                topic_id=None,
                title=display_title,
                content=content,
                version_number=version_number,
                is_new_version=version_number > 1,
                verification=None,
                is_public=False,
                similar_titles=similar_titles,
            )

        verification = await self.verifier.verify(display_title, category, content)
        content, verification = await self._regenerate_if_weak(
            title, display_title, category, version_number, similar_titles, content, verification
        )

        is_public = decide_visibility(verification, self.thresholds)
        topic = Topic.from_content(owner_id, category, display_title, content, is_public=is_public)
        topic = await self.repository.save_topic(topic, verification)

        return GenerationOutcome(
            topic_id=topic.id,
            title=display_title,
            content=content,
            version_number=version_number,
            is_new_version=version_number > 1,
            verification=verification,
            is_public=is_public,
            similar_titles=similar_titles,
        )

    async def _reuse(self, topic: Topic) -> GenerationOutcome:
        topic_id = topic.stored_id
        logger.info(f"Exact match: reusing topic id={topic_id} '{topic.title}'")
        verification = await self.repository.get_verification(topic_id)
        override = await self.repository.get_privacy_override(topic_id)
        return GenerationOutcome(
            topic_id=topic_id,
            title=topic.title,
            content=topic.to_content(),
            version_number=title_version(topic.title),
            is_new_version=False,
            verification=verification,
            is_public=effective_visibility(topic.is_public, override),
            reused=True,
        )

    async def _regenerate_if_weak(
        self,
        title: str,
        display_title: str,
        category: str,
        version_number: int,
        similar_titles: Sequence[str],
        content: GeneratedContent,
        verification: VerificationResult,
    ) -> tuple[GeneratedContent, VerificationResult]:
        overall = verification.overall_quality
        if overall is None or overall >= self.thresholds.min_overall_quality:
            return content, verification

        logger.info(
            f"'{display_title}' scored {overall}/10, regenerating once with accuracy-focused prompt"
        )
        retry = await self.generator.generate(
            title,
            category,
            version_number=version_number,
            previous_titles=similar_titles,
            accuracy_focused=True,
        )
        if retry.is_fallback:
            return content, verification

        retry_verification = await self.verifier.verify(display_title, category, retry)
        if _quality_rank(retry_verification) > _quality_rank(verification):
            logger.info(
                f"Keeping regenerated content ({retry_verification.overall_quality}/10 > {overall}/10)"
            )
            return retry, retry_verification

        logger.info("Keeping original content")
        return content, verification

    # =========================================================================
    # store_topic
    # =========================================================================

    async def store_topic(
        self,
        owner_id: int,
        category: str,
        title: str,
        summary: str,
        quiz: QuizItem | dict[str, Any] | None,
        key_points: Sequence[str] | None = None,
        verification: VerificationResult | None = None,
    ) -> StoreOutcome:
        """
        Verify (unless scores are given), gate and persist externally written content.

        Raises:
            ValueError: If ``summary`` is empty
            LLMNotConfiguredError: If scores are needed and no API key is configured
        """
        if not summary or not summary.strip():
            raise ValueError("summary is required to store a topic")

        quiz_item = quiz if isinstance(quiz, QuizItem) else QuizItem.from_dict(quiz)
        if quiz_item is None or not quiz_item.is_valid():
            logger.warning(f"Quiz for '{title}' is malformed, storing canned quiz instead")
            quiz_item = fallback_quiz(title)

        content = GeneratedContent(
            summary=summary.strip(),
            quiz=quiz_item,
            key_points=[kp for kp in (key_points or []) if kp],
        )
        if verification is None:
            self._require_ai(title)
            verification = await self.verifier.verify(title, category, content)

        is_public = decide_visibility(verification, self.thresholds)
        topic = Topic.from_content(owner_id, category, title, content, is_public=is_public)
        topic = await self.repository.save_topic(topic, verification)
        return StoreOutcome(topic_id=topic.stored_id, is_public=is_public, verification=verification)

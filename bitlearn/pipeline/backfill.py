"""
Re-score topics whose verification is missing or incomplete.

Topics are processed one at a time with a pause between them so the judge
endpoints are not hammered. Scores that already exist are kept; only the
missing judges are called. Once a topic has scores its visibility is
recomputed with the publication rule, so topics stored private after a
total judge failure become public when they earn it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from loguru import logger

from bitlearn.config import QualityThresholds
from bitlearn.topics.models import Topic
from bitlearn.verification.models import VerificationResult
from bitlearn.verification.publication import decide_visibility
from bitlearn.verification.verifier import ContentVerifier


class BackfillStore(Protocol):
    async def topics_needing_backfill(
        self, limit: int | None = None
    ) -> list[tuple[Topic, VerificationResult | None]]: ...

    async def update_verification(self, topic_id: int, verification: VerificationResult) -> None: ...

    async def update_visibility(self, topic_id: int, is_public: bool) -> None: ...


@dataclass
class BackfillItem:
    topic_id: int
    title: str
    overall_quality: int | None
    complete: bool
    is_public: bool = False
    error: str | None = None


@dataclass
class BackfillReport:
    items: list[BackfillItem] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.items)

    @property
    def completed(self) -> int:
        return sum(1 for item in self.items if item.complete)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if item.error is not None)


class BackfillService:
    """Fills in null judge scores for stored topics."""

    def __init__(
        self,
        verifier: ContentVerifier,
        repository: BackfillStore,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        thresholds: QualityThresholds | None = None,
    ):
        self.verifier = verifier
        self.repository = repository
        self.thresholds = thresholds or QualityThresholds()
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    async def run(self, limit: int | None = None) -> BackfillReport:
        report = BackfillReport()
        pending = await self.repository.topics_needing_backfill(limit)
        logger.info(f"Backfill: {len(pending)} topic(s) with missing scores")

        for index, (topic, existing) in enumerate(pending):
            if index > 0 and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)
            report.items.append(await self._backfill_one(topic, existing))

        logger.info(
            f"Backfill done: {report.completed}/{report.processed} complete, {report.failed} failed"
        )
        return report

    async def _backfill_one(self, topic: Topic, existing: VerificationResult | None) -> BackfillItem:
        topic_id = topic.stored_id
        logger.info(f"Backfilling topic id={topic_id} '{topic.title}'")
        is_public = topic.is_public
        try:
            result = await self.verifier.verify(
                topic.title, topic.category, topic.to_content(), existing=existing
            )
            await self.repository.update_verification(topic_id, result)
            # No scores yet: the publication decision stays deferred
            if result.overall_quality is not None:
                is_public = decide_visibility(result, self.thresholds)
                if is_public != topic.is_public:
                    await self.repository.update_visibility(topic_id, is_public)
        except Exception as e:  # One bad topic must not stop the batch
            logger.error(f"Backfill failed for topic id={topic_id}: {e}")
            return BackfillItem(
                topic_id=topic_id,
                title=topic.title,
                overall_quality=existing.overall_quality if existing else None,
                complete=False,
                is_public=topic.is_public,
                error=str(e),
            )

        return BackfillItem(
            topic_id=topic_id,
            title=topic.title,
            overall_quality=result.overall_quality,
            complete=result.available_count == len(result.scores),
            is_public=is_public,
        )

"""
Async persistence for topics, verification results and privacy overrides.

A topic and its verification are written in one session as two inserts
(topic first, to obtain its id). There is no cross-request lock: if a row
with the same owner, category and title (case-insensitive) already exists
at insert time, it is overwritten and the last write wins.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bitlearn.db.database import async_session_scope, get_async_session_factory
from bitlearn.db.models import ContentVerificationResult, GeneratedTopic, TopicPrivacyOverride
from bitlearn.topics.models import QuizItem, Topic, fallback_quiz
from bitlearn.verification.models import Dimension, JudgeScore, VerificationResult
from bitlearn.verification.publication import PrivacyOverride

# =============================================================================
# Row <-> domain conversion
# =============================================================================


def row_to_topic(row: GeneratedTopic) -> Topic:
    quiz = QuizItem.from_dict(row.quiz_data)
    if quiz is None:
        logger.warning(f"Stored quiz for topic {row.id} is malformed, substituting canned quiz")
        quiz = fallback_quiz(row.topic)
    return Topic(
        id=row.id,
        owner_id=row.user_id,
        category=row.category,
        title=row.topic,
        summary=row.summary,
        quiz=quiz,
        key_points=list(row.key_points or []),
        reading_time_minutes=row.reading_time_minutes,
        quiz_count=row.quiz_count,
        is_public=row.is_public,
        is_fallback=row.is_fallback,
        created_at=row.created_at,
    )


def apply_topic(row: GeneratedTopic, topic: Topic) -> None:
    row.user_id = topic.owner_id
    row.category = topic.category
    row.topic = topic.title
    row.summary = topic.summary
    row.quiz_data = topic.quiz.to_dict()
    row.key_points = list(topic.key_points)
    row.reading_time_minutes = topic.reading_time_minutes
    row.quiz_count = topic.quiz_count
    row.is_public = topic.is_public
    row.is_fallback = topic.is_fallback


def row_to_verification(row: ContentVerificationResult, quality_threshold: int = 6) -> VerificationResult:
    result = VerificationResult(quality_threshold=quality_threshold)
    for dimension in Dimension:
        prefix = dimension.value
        result.set_score(
            dimension,
            JudgeScore(
                score=getattr(row, f"{prefix}_score"),
                feedback=getattr(row, f"{prefix}_feedback") or "",
                model=getattr(row, f"{prefix}_model") or "",
            ),
        )
    result.overall_quality = row.overall_quality_score
    return result


def apply_verification(row: ContentVerificationResult, result: VerificationResult) -> None:
    for dimension, score in result.scores.items():
        prefix = dimension.value
        setattr(row, f"{prefix}_score", score.score)
        setattr(row, f"{prefix}_feedback", score.feedback)
        setattr(row, f"{prefix}_model", score.model)
    row.overall_quality_score = result.overall_quality
    row.meets_quality_standards = result.meets_quality_standards


# =============================================================================
# Repository
# =============================================================================


class TopicRepository:
    """Reads and writes topics through an async session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        quality_threshold: int = 6,
    ):
        self.session_factory = session_factory or get_async_session_factory()
        self.quality_threshold = quality_threshold

    async def list_topics(self, owner_id: int, category: str | None = None) -> list[Topic]:
        """Owner's topics (optionally one category), most recently created first."""
        stmt = select(GeneratedTopic).where(GeneratedTopic.user_id == owner_id)
        if category is not None:
            stmt = stmt.where(GeneratedTopic.category == category)
        stmt = stmt.order_by(GeneratedTopic.created_at.desc(), GeneratedTopic.id.desc())

        async with async_session_scope(self.session_factory) as session:
            rows = (await session.scalars(stmt)).all()
        return [row_to_topic(row) for row in rows]

    async def get_topic(self, topic_id: int) -> Topic | None:
        async with async_session_scope(self.session_factory) as session:
            row = await session.get(GeneratedTopic, topic_id)
        return row_to_topic(row) if row else None

    async def get_verification(self, topic_id: int) -> VerificationResult | None:
        stmt = select(ContentVerificationResult).where(ContentVerificationResult.topic_id == topic_id)
        async with async_session_scope(self.session_factory) as session:
            row = await session.scalar(stmt)
        return row_to_verification(row, self.quality_threshold) if row else None

    async def save_topic(self, topic: Topic, verification: VerificationResult) -> Topic:
        """
        Persist a topic and its verification.

        Returns the topic with ``id`` and ``created_at`` filled in.
        """
        async with async_session_scope(self.session_factory) as session:
            row = await self._find_exact(session, topic.owner_id, topic.category, topic.title)
            if row is None:
                row = GeneratedTopic(created_at=topic.created_at)
                session.add(row)
            else:
                logger.warning(
                    f"Topic '{topic.title}' already stored as id={row.id} for owner "
                    f"{topic.owner_id}; overwriting (last write wins)"
                )
            apply_topic(row, topic)
            await session.flush()

            ver_row = await session.scalar(
                select(ContentVerificationResult).where(ContentVerificationResult.topic_id == row.id)
            )
            if ver_row is None:
                ver_row = ContentVerificationResult(topic_id=row.id)
                session.add(ver_row)
            apply_verification(ver_row, verification)

            topic.id = row.id
            topic.created_at = row.created_at

        logger.info(f"Stored topic id={topic.id} '{topic.title}' (public={topic.is_public})")
        return topic

    async def update_verification(self, topic_id: int, verification: VerificationResult) -> None:
        """Replace the stored scores of a topic (used by the backfill)."""
        async with async_session_scope(self.session_factory) as session:
            ver_row = await session.scalar(
                select(ContentVerificationResult).where(ContentVerificationResult.topic_id == topic_id)
            )
            if ver_row is None:
                ver_row = ContentVerificationResult(topic_id=topic_id)
                session.add(ver_row)
            apply_verification(ver_row, verification)

    async def update_visibility(self, topic_id: int, is_public: bool) -> None:
        async with async_session_scope(self.session_factory) as session:
            row = await session.get(GeneratedTopic, topic_id)
            if row is None:
                raise ValueError(f"Topic not found: {topic_id}")
            row.is_public = is_public
        logger.info(f"Topic {topic_id} visibility set to public={is_public}")

    async def topics_needing_backfill(
        self, limit: int | None = None
    ) -> list[tuple[Topic, VerificationResult | None]]:
        """Non-fallback topics with a missing verification or any null judge score."""
        stmt = (
            select(GeneratedTopic, ContentVerificationResult)
            .outerjoin(
                ContentVerificationResult,
                ContentVerificationResult.topic_id == GeneratedTopic.id,
            )
            .where(GeneratedTopic.is_fallback.is_(False))
            .where(GeneratedTopic.summary != "")
            .where(
                or_(
                    ContentVerificationResult.id.is_(None),
                    ContentVerificationResult.factual_accuracy_score.is_(None),
                    ContentVerificationResult.educational_value_score.is_(None),
                    ContentVerificationResult.clarity_engagement_score.is_(None),
                )
            )
            .order_by(GeneratedTopic.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        async with async_session_scope(self.session_factory) as session:
            rows = (await session.execute(stmt)).all()
        return [
            (row_to_topic(topic_row), row_to_verification(ver_row, self.quality_threshold) if ver_row else None)
            for topic_row, ver_row in rows
        ]

    # ------------------------------------------------------------------
    # Privacy overrides
    # ------------------------------------------------------------------

    async def get_privacy_override(self, topic_id: int) -> PrivacyOverride | None:
        stmt = select(TopicPrivacyOverride).where(TopicPrivacyOverride.topic_id == topic_id)
        async with async_session_scope(self.session_factory) as session:
            row = await session.scalar(stmt)
        if row is None:
            return None
        return PrivacyOverride(
            topic_id=row.topic_id,
            force_private=row.force_private,
            reason=row.reason or "",
            created_at=row.created_at,
        )

    async def set_privacy_override(
        self, topic_id: int, force_private: bool = True, reason: str = ""
    ) -> PrivacyOverride:
        async with async_session_scope(self.session_factory) as session:
            row = await session.scalar(
                select(TopicPrivacyOverride).where(TopicPrivacyOverride.topic_id == topic_id)
            )
            if row is None:
                row = TopicPrivacyOverride(topic_id=topic_id)
                session.add(row)
            row.force_private = force_private
            row.reason = reason
        logger.info(f"Privacy override for topic {topic_id}: force_private={force_private}")
        return PrivacyOverride(topic_id=topic_id, force_private=force_private, reason=reason)

    async def clear_privacy_override(self, topic_id: int) -> bool:
        async with async_session_scope(self.session_factory) as session:
            row = await session.scalar(
                select(TopicPrivacyOverride).where(TopicPrivacyOverride.topic_id == topic_id)
            )
            if row is None:
                return False
            await session.delete(row)
        return True

    @staticmethod
    async def _find_exact(
        session: AsyncSession, owner_id: int, category: str, title: str
    ) -> GeneratedTopic | None:
        stmt = (
            select(GeneratedTopic)
            .where(GeneratedTopic.user_id == owner_id)
            .where(GeneratedTopic.category == category)
            .where(func.lower(GeneratedTopic.topic) == title.lower())
            .order_by(GeneratedTopic.created_at.desc())
            .limit(1)
        )
        return await session.scalar(stmt)

"""
SQLAlchemy models for generated topics and their verification.

Tables:
- generated_topics: one row per topic (owner, category, title, content)
- content_verification_results: judge scores, 1:1 with a topic
- topic_privacy_overrides: explicit "keep private" decisions, 1:1 with a topic

JSON columns use JSONB on PostgreSQL and plain JSON elsewhere.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class GeneratedTopic(Base):
    """A generated topic owned by a user."""

    __tablename__ = "generated_topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    quiz_data: Mapped[dict] = mapped_column(JSONType, nullable=False)
    key_points: Mapped[list] = mapped_column(JSONType, default=list)
    reading_time_minutes: Mapped[int] = mapped_column(Integer, default=1)
    quiz_count: Mapped[int] = mapped_column(Integer, default=1)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    is_fallback: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    verification: Mapped[ContentVerificationResult | None] = relationship(
        back_populates="topic", cascade="all, delete-orphan", uselist=False
    )
    privacy_override: Mapped[TopicPrivacyOverride | None] = relationship(
        back_populates="topic", cascade="all, delete-orphan", uselist=False
    )


class ContentVerificationResult(Base):
    """Scores from the three judges plus the aggregate."""

    __tablename__ = "content_verification_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(
        ForeignKey("generated_topics.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    factual_accuracy_score: Mapped[int | None] = mapped_column(Integer)
    factual_accuracy_feedback: Mapped[str] = mapped_column(Text, default="")
    factual_accuracy_model: Mapped[str] = mapped_column(Text, default="")

    educational_value_score: Mapped[int | None] = mapped_column(Integer)
    educational_value_feedback: Mapped[str] = mapped_column(Text, default="")
    educational_value_model: Mapped[str] = mapped_column(Text, default="")

    clarity_engagement_score: Mapped[int | None] = mapped_column(Integer)
    clarity_engagement_feedback: Mapped[str] = mapped_column(Text, default="")
    clarity_engagement_model: Mapped[str] = mapped_column(Text, default="")

    overall_quality_score: Mapped[int | None] = mapped_column(Integer)
    meets_quality_standards: Mapped[bool] = mapped_column(Boolean, default=False)
    verification_timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    topic: Mapped[GeneratedTopic] = relationship(back_populates="verification")


class TopicPrivacyOverride(Base):
    """User decision that overrides the computed visibility."""

    __tablename__ = "topic_privacy_overrides"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(
        ForeignKey("generated_topics.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    force_private: Mapped[bool] = mapped_column(Boolean, default=True)
    reason: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    topic: Mapped[GeneratedTopic] = relationship(back_populates="privacy_override")

"""Verification result types shared by the judges, verifier and decider."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Dimension(str, Enum):
    """Quality dimension scored by one judge."""

    FACTUAL_ACCURACY = "factual_accuracy"
    EDUCATIONAL_VALUE = "educational_value"
    CLARITY_ENGAGEMENT = "clarity_engagement"

    @property
    def api_key(self) -> str:
        return _API_KEYS[self]


_API_KEYS = {
    Dimension.FACTUAL_ACCURACY: "factualAccuracy",
    Dimension.EDUCATIONAL_VALUE: "educationalValue",
    Dimension.CLARITY_ENGAGEMENT: "clarityAndEngagement",
}


class VerificationStage(str, Enum):
    """Progress of one verification run."""

    PENDING = "pending"
    FACTUAL_DONE = "factual_done"
    FACTUAL_FAILED = "factual_failed"
    EDU_DONE = "edu_done"
    EDU_FAILED = "edu_failed"
    CLARITY_DONE = "clarity_done"
    CLARITY_FAILED = "clarity_failed"
    AGGREGATED = "aggregated"


STAGE_OUTCOMES: dict[Dimension, tuple[VerificationStage, VerificationStage]] = {
    Dimension.FACTUAL_ACCURACY: (VerificationStage.FACTUAL_DONE, VerificationStage.FACTUAL_FAILED),
    Dimension.EDUCATIONAL_VALUE: (VerificationStage.EDU_DONE, VerificationStage.EDU_FAILED),
    Dimension.CLARITY_ENGAGEMENT: (VerificationStage.CLARITY_DONE, VerificationStage.CLARITY_FAILED),
}


@dataclass
class JudgeScore:
    """One judge's verdict. ``score`` is 1-10, or None when unavailable."""

    score: int | None = None
    feedback: str = ""
    model: str = ""

    @property
    def available(self) -> bool:
        return self.score is not None

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "feedback": self.feedback, "model": self.model}


@dataclass
class VerificationResult:
    """Scores of the three judges plus the aggregate."""

    factual_accuracy: JudgeScore = field(default_factory=JudgeScore)
    educational_value: JudgeScore = field(default_factory=JudgeScore)
    clarity_engagement: JudgeScore = field(default_factory=JudgeScore)
    overall_quality: int | None = None
    quality_threshold: int = 6
    stages: list[VerificationStage] = field(default_factory=lambda: [VerificationStage.PENDING])

    def score_for(self, dimension: Dimension) -> JudgeScore:
        return getattr(self, dimension.value)

    def set_score(self, dimension: Dimension, score: JudgeScore) -> None:
        setattr(self, dimension.value, score)

    @property
    def scores(self) -> dict[Dimension, JudgeScore]:
        return {d: self.score_for(d) for d in Dimension}

    @property
    def available_count(self) -> int:
        return sum(1 for s in self.scores.values() if s.available)

    @property
    def meets_quality_standards(self) -> bool:
        return self.overall_quality is not None and self.overall_quality >= self.quality_threshold

    @property
    def needs_backfill(self) -> bool:
        """True when at least one judge has no score."""
        return self.available_count < len(Dimension)

    @property
    def stage(self) -> VerificationStage:
        return self.stages[-1]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {d.api_key: s.to_dict() for d, s in self.scores.items()}
        data["overallQuality"] = {
            "score": self.overall_quality,
            "feedback": (
                f"Overall quality based on {self.available_count} verification models"
                if self.overall_quality is not None
                else "No verification model returned a score"
            ),
            "model": "Multi-Model Average",
        }
        data["meetsQualityStandards"] = self.meets_quality_standards
        return data

"""
Publication decision for verified topics.

A topic is public when it meets the overall quality standard, or when the
factual accuracy judge alone scored it highly. A stored privacy override
always wins over the computed value.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from bitlearn.config import QualityThresholds

from .models import VerificationResult


@dataclass
class PrivacyOverride:
    """Explicit user decision to keep a topic private."""

    topic_id: int
    force_private: bool = True
    reason: str = ""
    created_at: datetime = field(default_factory=datetime.now)


def decide_visibility(
    result: VerificationResult,
    thresholds: QualityThresholds | None = None,
) -> bool:
    """
    Compute ``is_public`` for a verification result.

    With no judge scores at all this is False.
    """
    thresholds = thresholds or QualityThresholds()
    meets_standards = (
        result.overall_quality is not None
        and result.overall_quality >= thresholds.min_overall_quality
    )
    factual = result.factual_accuracy.score
    return meets_standards or (
        factual is not None and factual >= thresholds.min_factual_accuracy_override
    )


def effective_visibility(is_public: bool, override: PrivacyOverride | None = None) -> bool:
    """Apply a stored privacy override to a computed visibility."""
    if override is not None and override.force_private:
        return False
    return is_public

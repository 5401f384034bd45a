"""Quality verification: judge scores, aggregation and publication.

The verifier itself lives in ``bitlearn.verification.verifier``.
"""
from bitlearn.verification.models import (
    Dimension,
    JudgeScore,
    VerificationResult,
    VerificationStage,
)
from bitlearn.verification.publication import (
    PrivacyOverride,
    decide_visibility,
    effective_visibility,
)

__all__ = [
    "Dimension",
    "JudgeScore",
    "PrivacyOverride",
    "VerificationResult",
    "VerificationStage",
    "decide_visibility",
    "effective_visibility",
]

# SQLAlchemy models
from .models import Base, ContentVerificationResult, GeneratedTopic, TopicPrivacyOverride

__all__ = [
    "Base",
    "GeneratedTopic",
    "ContentVerificationResult",
    "TopicPrivacyOverride",
]

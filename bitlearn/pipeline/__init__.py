"""Topic generation pipeline: orchestration and score backfill."""

from .backfill import BackfillItem, BackfillReport, BackfillService
from .orchestrator import GenerationOutcome, StoreOutcome, TopicOrchestrator

__all__ = [
    "BackfillItem",
    "BackfillReport",
    "BackfillService",
    "GenerationOutcome",
    "StoreOutcome",
    "TopicOrchestrator",
]

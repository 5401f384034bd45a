"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
a scripted stand-in for the chat-completion client, an in-memory topic
store and helpers that wire the pipeline together without network access.
"""
import json
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from loguru import logger

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from bitlearn.config import QualityThresholds, RetryPolicy  # noqa: E402
from bitlearn.generation.generator import ContentGenerator  # noqa: E402
from bitlearn.llm.client import ApiCaller  # noqa: E402
from bitlearn.llm.parser import ResponseParser  # noqa: E402
from bitlearn.pipeline.orchestrator import TopicOrchestrator  # noqa: E402
from bitlearn.topics.models import QuizItem, Topic  # noqa: E402
from bitlearn.verification.judges import CLARITY_RUBRIC, EDUCATIONAL_RUBRIC, FACTUAL_RUBRIC  # noqa: E402
from bitlearn.verification.publication import PrivacyOverride  # noqa: E402
from bitlearn.verification.verifier import ContentVerifier  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite via aiosqlite)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ========================================
# Canned model answers
# ========================================


def judge_answer(score, feedback="Looks good"):
    """A judge answer in the shape the rubrics ask for."""
    return json.dumps({"score": score, "feedback": feedback})


def content_answer(
    summary="Neural networks are layered functions that learn weights from examples.",
    key_points=("Layers transform inputs", "Weights are learned"),
    question="What do neural networks learn during training?",
    options=("Weights", "Colours", "File names", "Fonts"),
    correct_answer="Weights",
):
    """A generator answer, fenced the way models usually send it."""
    body = {
        "summary": summary,
        "key_points": list(key_points),
        "quiz": {
            "question": question,
            "options": list(options),
            "correct_answer": correct_answer,
        },
    }
    return "```json\n" + json.dumps(body) + "\n```"


# ========================================
# Test doubles
# ========================================


class ScriptedClient:
    """
    Stands in for ChatCompletionClient.

    Requests are routed by their system prompt to one of four scripts
    (generation, factual, educational, clarity). A script is a string, an
    exception, or a list of those consumed in order (the last one repeats).
    """

    def __init__(self, generation=None, factual=None, educational=None, clarity=None):
        self.scripts = {
            "generation": generation if generation is not None else content_answer(),
            "factual": factual if factual is not None else judge_answer(8),
            "educational": educational if educational is not None else judge_answer(8),
            "clarity": clarity if clarity is not None else judge_answer(8),
        }
        self.requests = []

    @staticmethod
    def route(request):
        system = request.messages[0]["content"]
        return {
            FACTUAL_RUBRIC: "factual",
            EDUCATIONAL_RUBRIC: "educational",
            CLARITY_RUBRIC: "clarity",
        }.get(system, "generation")

    def calls_for(self, route):
        return [r for r in self.requests if self.route(r) == route]

    async def complete(self, request):
        self.requests.append(request)
        script = self.scripts[self.route(request)]
        if isinstance(script, list):
            answer = script.pop(0) if len(script) > 1 else script[0]
        else:
            answer = script
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def close(self):
        pass


class RecordingSleep:
    """Async sleep replacement that records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class InMemoryTopicRepository:
    """Dict-backed store with the same contract as TopicRepository."""

    def __init__(self):
        self.topics = {}
        self.verifications = {}
        self.overrides = {}
        self.saves = 0
        self.visibility_updates = 0
        self._next_id = 1

    def add(
        self, owner_id, category, title, minutes_ago=0, verification=None, is_fallback=False, is_public=False
    ):
        """Seed a topic directly (no pipeline)."""
        topic = Topic(
            id=self._next_id,
            owner_id=owner_id,
            category=category,
            title=title,
            summary=f"Stored summary for {title}.",
            quiz=QuizItem(
                question=f"What is {title}?",
                options=["A thing", "Another thing", "Something else", "Nothing"],
                correct_answer="A thing",
            ),
            is_public=is_public,
            is_fallback=is_fallback,
            created_at=datetime.now() - timedelta(minutes=minutes_ago),
        )
        self.topics[topic.id] = topic
        if verification is not None:
            self.verifications[topic.id] = verification
        self._next_id += 1
        return topic

    async def list_topics(self, owner_id, category=None):
        found = [
            t
            for t in self.topics.values()
            if t.owner_id == owner_id and (category is None or t.category == category)
        ]
        return sorted(found, key=lambda t: (t.created_at, t.id), reverse=True)

    async def get_topic(self, topic_id):
        return self.topics.get(topic_id)

    async def get_verification(self, topic_id):
        return self.verifications.get(topic_id)

    async def save_topic(self, topic, verification):
        self.saves += 1
        for existing in self.topics.values():
            if (
                existing.owner_id == topic.owner_id
                and existing.category == topic.category
                and existing.title.lower() == topic.title.lower()
            ):
                topic.id = existing.id
                break
        else:
            topic.id = self._next_id
            self._next_id += 1
        self.topics[topic.id] = topic
        self.verifications[topic.id] = verification
        return topic

    async def update_verification(self, topic_id, verification):
        self.verifications[topic_id] = verification

    async def update_visibility(self, topic_id, is_public):
        self.visibility_updates += 1
        self.topics[topic_id].is_public = is_public

    async def topics_needing_backfill(self, limit=None):
        pending = []
        for topic in sorted(self.topics.values(), key=lambda t: t.created_at, reverse=True):
            if topic.is_fallback or not topic.summary:
                continue
            verification = self.verifications.get(topic.id)
            if verification is None or verification.needs_backfill:
                pending.append((topic, verification))
        return pending[:limit] if limit is not None else pending

    async def get_privacy_override(self, topic_id):
        return self.overrides.get(topic_id)

    async def set_privacy_override(self, topic_id, force_private=True, reason=""):
        override = PrivacyOverride(topic_id=topic_id, force_private=force_private, reason=reason)
        self.overrides[topic_id] = override
        return override

    async def clear_privacy_override(self, topic_id):
        return self.overrides.pop(topic_id, None) is not None


# ========================================
# Fixtures
# ========================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def memory_repository():
    return InMemoryTopicRepository()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def make_caller(recording_sleep):
    """Factory: ApiCaller over a ScriptedClient, no real sleeping."""

    def _make(client, max_retries=2, base_delay=1.0):
        return ApiCaller(client, RetryPolicy(max_retries=max_retries, base_delay=base_delay), sleep=recording_sleep)

    return _make


@pytest.fixture
def make_orchestrator(make_caller, memory_repository):
    """Factory: a fully wired orchestrator over a ScriptedClient."""

    def _make(client, repository=None, parallel=False, ai_configured=True):
        caller = make_caller(client)
        parser = ResponseParser()
        thresholds = QualityThresholds()
        return TopicOrchestrator(
            repository=repository if repository is not None else memory_repository,
            generator=ContentGenerator(caller, parser),
            verifier=ContentVerifier(caller, parser, thresholds=thresholds, parallel=parallel),
            thresholds=thresholds,
            ai_configured=ai_configured,
        )

    return _make

"""
Unit tests for the verification backfill job.
"""

import httpx
import pytest

from bitlearn.llm.parser import ResponseParser
from bitlearn.pipeline.backfill import BackfillService
from bitlearn.verification.models import Dimension, JudgeScore, VerificationResult
from bitlearn.verification.verifier import ContentVerifier
from conftest import RecordingSleep, ScriptedClient, judge_answer


def partial_result(**scores):
    result = VerificationResult()
    for name, score in scores.items():
        result.set_score(Dimension(name), JudgeScore(score=score, feedback="stored"))
    return result


@pytest.fixture
def make_service(make_caller, memory_repository):
    def _make(client, delay_seconds=1.0):
        verifier = ContentVerifier(make_caller(client), ResponseParser())
        sleep = RecordingSleep()
        return BackfillService(verifier, memory_repository, delay_seconds=delay_seconds, sleep=sleep), sleep

    return _make


class TestBackfillService:
    @pytest.mark.asyncio
    async def test_only_missing_judges_rerun(self, make_service, memory_repository):
        topic = memory_repository.add(
            1, "Tech", "Neural Networks", verification=partial_result(factual_accuracy=9, educational_value=7)
        )
        client = ScriptedClient(clarity=judge_answer(8))
        service, _ = make_service(client)

        report = await service.run()

        assert [ScriptedClient.route(r) for r in client.requests] == ["clarity"]
        stored = memory_repository.verifications[topic.id]
        assert stored.factual_accuracy.feedback == "stored"
        assert stored.clarity_engagement.score == 8
        assert stored.overall_quality == 8
        assert report.completed == 1

    @pytest.mark.asyncio
    async def test_topics_without_verification_are_scored(self, make_service, memory_repository):
        topic = memory_repository.add(1, "Tech", "Neural Networks")
        client = ScriptedClient()
        service, _ = make_service(client)

        await service.run()

        assert len(client.requests) == 3
        assert memory_repository.verifications[topic.id].overall_quality == 8

    @pytest.mark.asyncio
    async def test_sequential_with_delay_between_topics(self, make_service, memory_repository):
        for minutes_ago, title in enumerate(["A", "B", "C"]):
            memory_repository.add(1, "Tech", title, minutes_ago=minutes_ago)
        service, sleep = make_service(ScriptedClient(), delay_seconds=1.0)

        report = await service.run()

        assert report.processed == 3
        assert sleep.delays == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_skips_fallback_and_complete_topics(self, make_service, memory_repository):
        complete = partial_result(factual_accuracy=8, educational_value=8, clarity_engagement=8)
        memory_repository.add(1, "Tech", "Done", verification=complete)
        memory_repository.add(1, "Tech", "Placeholder", is_fallback=True)
        client = ScriptedClient()
        service, _ = make_service(client)

        report = await service.run()

        assert report.processed == 0
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_still_failing_judge_is_partial(self, make_service, memory_repository):
        memory_repository.add(1, "Tech", "Neural Networks", verification=partial_result(factual_accuracy=6))
        client = ScriptedClient(educational=judge_answer(6), clarity=httpx.ReadTimeout("slow"))
        service, _ = make_service(client)

        report = await service.run()

        item = report.items[0]
        assert item.complete is False
        assert item.error is None
        assert item.overall_quality == 6

    @pytest.mark.asyncio
    async def test_unscored_topic_published_once_scores_arrive(
        self, make_orchestrator, make_service, memory_repository
    ):
        error = httpx.ConnectError("refused")
        orchestrator = make_orchestrator(ScriptedClient(factual=error, educational=error, clarity=error))
        outcome = await orchestrator.generate(1, "Tech", "Neural Networks")
        assert memory_repository.topics[outcome.topic_id].is_public is False

        service, _ = make_service(
            ScriptedClient(factual=judge_answer(9), educational=judge_answer(9), clarity=judge_answer(9))
        )
        report = await service.run()

        stored = memory_repository.verifications[outcome.topic_id]
        assert stored.overall_quality == 9
        assert memory_repository.topics[outcome.topic_id].is_public is True
        assert report.items[0].is_public is True

    @pytest.mark.asyncio
    async def test_high_factual_score_alone_publishes(self, make_service, memory_repository):
        topic = memory_repository.add(1, "Tech", "Neural Networks")
        client = ScriptedClient(factual=judge_answer(8), educational=judge_answer(3), clarity=judge_answer(3))
        service, _ = make_service(client)

        await service.run()

        assert memory_repository.verifications[topic.id].overall_quality == 5
        assert memory_repository.topics[topic.id].is_public is True

    @pytest.mark.asyncio
    async def test_low_scores_stay_private(self, make_service, memory_repository):
        topic = memory_repository.add(1, "Tech", "Neural Networks")
        client = ScriptedClient(factual=judge_answer(4), educational=judge_answer(4), clarity=judge_answer(4))
        service, _ = make_service(client)

        report = await service.run()

        assert memory_repository.topics[topic.id].is_public is False
        assert memory_repository.visibility_updates == 0
        assert report.items[0].is_public is False

    @pytest.mark.asyncio
    async def test_visibility_follows_completed_scores(self, make_service, memory_repository):
        topic = memory_repository.add(
            1, "Tech", "Neural Networks", verification=partial_result(factual_accuracy=6), is_public=True
        )
        client = ScriptedClient(educational=judge_answer(3), clarity=judge_answer(3))
        service, _ = make_service(client)

        await service.run()

        assert memory_repository.verifications[topic.id].overall_quality == 4
        assert memory_repository.topics[topic.id].is_public is False
        assert memory_repository.visibility_updates == 1

    @pytest.mark.asyncio
    async def test_still_unscored_keeps_decision_deferred(self, make_service, memory_repository):
        topic = memory_repository.add(1, "Tech", "Neural Networks")
        error = httpx.ReadTimeout("slow")
        service, _ = make_service(ScriptedClient(factual=error, educational=error, clarity=error))

        report = await service.run()

        assert memory_repository.verifications[topic.id].overall_quality is None
        assert memory_repository.topics[topic.id].is_public is False
        assert memory_repository.visibility_updates == 0
        assert report.items[0].complete is False

    @pytest.mark.asyncio
    async def test_limit(self, make_service, memory_repository):
        for title in ["A", "B", "C"]:
            memory_repository.add(1, "Tech", title)
        service, _ = make_service(ScriptedClient())

        report = await service.run(limit=2)

        assert report.processed == 2

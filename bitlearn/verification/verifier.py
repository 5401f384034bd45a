"""
Multi-judge content verification.

Runs the factual, educational and clarity judges against generated content
and aggregates whatever scores come back:

    PENDING -> FACTUAL_{DONE|FAILED} -> EDU_{DONE|FAILED}
            -> CLARITY_{DONE|FAILED} -> AGGREGATED

A judge that fails (after retries and parse recovery) records ``score=None``
and the run continues. The overall score is the round-half-up mean of the
available scores; with none available it stays unset and the topic is
left for the backfill job.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from loguru import logger

from bitlearn.config import QualityThresholds, TimeoutTable
from bitlearn.llm.client import ApiCaller, ChatRequest
from bitlearn.llm.parser import ResponseParser
from bitlearn.topics.models import GeneratedContent

from .judges import Judge, build_judges
from .models import STAGE_OUTCOMES, JudgeScore, VerificationResult, VerificationStage


def aggregate_scores(scores: Iterable[int | None]) -> int | None:
    """
    Rounded mean of the available scores.

    None and 0 never count. Halves round up (7.5 -> 8). Returns None when no
    score is available.
    """
    available = [s for s in scores if s]
    if not available:
        return None
    mean = Decimal(sum(available)) / Decimal(len(available))
    return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ContentVerifier:
    """
    Scores content with three independent LLM judges.

    Judges run one after another by default; ``parallel=True`` issues the
    three calls together. Either way any subset of successful judges is
    enough for aggregation.
    """

    def __init__(
        self,
        caller: ApiCaller,
        parser: ResponseParser | None = None,
        judges: Sequence[Judge] | None = None,
        timeouts: TimeoutTable | None = None,
        thresholds: QualityThresholds | None = None,
        parallel: bool = False,
    ):
        self.caller = caller
        self.parser = parser or ResponseParser()
        self.judges = tuple(judges) if judges is not None else build_judges()
        self.timeouts = timeouts or TimeoutTable()
        self.thresholds = thresholds or QualityThresholds()
        self.parallel = parallel

    async def verify(
        self,
        title: str,
        category: str,
        content: GeneratedContent,
        existing: VerificationResult | None = None,
    ) -> VerificationResult:
        """
        Verify content.

        Args:
            title: Topic title shown to the judges
            category: Topic category
            content: Content to score
            existing: Earlier result; its available scores are kept and only
                the missing judges are re-run

        Returns:
            VerificationResult with the stage trail and aggregate
        """
        result = VerificationResult(quality_threshold=self.thresholds.min_overall_quality)

        kept: dict[Judge, JudgeScore] = {}
        pending: list[Judge] = []
        for judge in self.judges:
            previous = existing.score_for(judge.dimension) if existing else None
            if previous is not None and previous.available:
                kept[judge] = previous
            else:
                pending.append(judge)

        if self.parallel:
            fresh = await asyncio.gather(
                *(self._run_judge(judge, title, category, content) for judge in pending)
            )
        else:
            fresh = []
            for judge in pending:
                fresh.append(await self._run_judge(judge, title, category, content))
        scored = dict(zip(pending, fresh))

        for judge in self.judges:
            score = kept.get(judge) or scored[judge]
            result.set_score(judge.dimension, score)
            done, failed = STAGE_OUTCOMES[judge.dimension]
            result.stages.append(done if score.available else failed)

        result.overall_quality = aggregate_scores(s.score for s in result.scores.values())
        result.stages.append(VerificationStage.AGGREGATED)

        if result.overall_quality is None:
            logger.warning(f"All judges failed for '{title}', overall quality left unset")
        else:
            logger.info(
                f"Verified '{title}': overall {result.overall_quality}/10 "
                f"from {result.available_count} judge(s)"
            )
        return result

    async def _run_judge(
        self,
        judge: Judge,
        title: str,
        category: str,
        content: GeneratedContent,
    ) -> JudgeScore:
        request = ChatRequest.from_prompts(
            model=judge.model,
            system=judge.rubric,
            user=judge.build_user_prompt(title, category, content),
            max_tokens=self.thresholds.judge_max_tokens,
            timeout=self.timeouts.for_operation("medium"),
        )
        try:
            raw = await self.caller.call(request, judge.name)
        except Exception as e:  # Intentionally broad - one judge must never abort verification
            logger.warning(f"{judge.name} failed: {e}")
            return JudgeScore(score=None, feedback=f"{judge.name} unavailable: {e}", model=judge.model)

        score = self.parser.parse_score(raw, model=judge.model, label=judge.name)
        if score.available:
            logger.info(f"{judge.name}: {score.score}/10")
        return score

"""
Quality judges for generated topics.

Three independent judges, each scoring one dimension on a 1-10 scale:

1. FACTUAL ACCURACY     - is the content correct?
2. EDUCATIONAL VALUE    - does it teach something useful?
3. CLARITY & ENGAGEMENT - is it clear and pleasant to read?

Each judge has its own rubric (with documented score bands) and its own
model string; they share the same JSON answer shape.
"""
from __future__ import annotations

import json
from dataclasses import dataclass

from bitlearn.config import JudgeModels
from bitlearn.topics.models import GeneratedContent

from .models import Dimension

FACTUAL_RUBRIC = """You are an expert fact-checker. Analyze educational content for factual accuracy.

Rate 1-10:
1-3: Major factual errors
4-6: Some inaccuracies
7-8: Generally accurate
9-10: Highly accurate

Respond with JSON:
{
  "score": number (1-10),
  "feedback": "Brief feedback about accuracy",
  "issues": ["Any factual issues"],
  "recommendations": ["Improvement suggestions"]
}"""

EDUCATIONAL_RUBRIC = """You are an educational content evaluator. Assess educational value and learning effectiveness.

Rate 1-10:
1-3: Poor educational value
4-6: Basic educational value
7-8: Good educational value
9-10: Excellent educational value

Respond with JSON:
{
  "score": number (1-10),
  "feedback": "Brief feedback about educational value",
  "learning_objectives": ["Learning objectives achieved"],
  "improvements": ["Enhancement suggestions"]
}"""

CLARITY_RUBRIC = """You are an expert in content clarity and engagement. Evaluate communication quality.

Rate 1-10:
1-3: Very unclear, not engaging
4-6: Somewhat clear, basic engagement
7-8: Clear and engaging
9-10: Exceptionally clear, highly engaging

Respond with JSON:
{
  "score": number (1-10),
  "feedback": "Brief feedback about clarity and engagement",
  "strengths": ["Communication strengths"],
  "weaknesses": ["Areas for improvement"]
}"""


@dataclass(frozen=True)
class Judge:
    """One scoring role."""

    dimension: Dimension
    name: str
    rubric: str
    instruction: str
    model: str
    include_quiz: bool = False

    def build_user_prompt(self, title: str, category: str, content: GeneratedContent) -> str:
        parts = [
            f"Topic: {title}",
            f"Category: {category}",
            f"Content: {content.summary}",
        ]
        if self.include_quiz:
            parts.append(f"Quiz: {json.dumps(content.quiz.to_dict())}")
        parts.append("")
        parts.append(self.instruction)
        return "\n".join(parts)


def build_judges(models: JudgeModels | None = None) -> tuple[Judge, ...]:
    """The three judges in the order they run."""
    models = models or JudgeModels()
    return (
        Judge(
            dimension=Dimension.FACTUAL_ACCURACY,
            name="Factual Accuracy Check",
            rubric=FACTUAL_RUBRIC,
            instruction="Verify factual accuracy.",
            model=models.factual_accuracy,
        ),
        Judge(
            dimension=Dimension.EDUCATIONAL_VALUE,
            name="Educational Value Check",
            rubric=EDUCATIONAL_RUBRIC,
            instruction="Evaluate educational value.",
            model=models.educational_value,
            include_quiz=True,
        ),
        Judge(
            dimension=Dimension.CLARITY_ENGAGEMENT,
            name="Clarity and Engagement Check",
            rubric=CLARITY_RUBRIC,
            instruction="Evaluate clarity and engagement.",
            model=models.clarity_engagement,
        ),
    )

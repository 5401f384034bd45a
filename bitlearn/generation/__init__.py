"""LLM-based content generation for learning topics.

Usage:
    from bitlearn.generation import ContentGenerator

    content = await generator.generate("Neural Networks", "Technology")
    print(content.summary)
    print(content.quiz.question)
"""
from bitlearn.generation.generator import ContentGenerator
from bitlearn.generation.prompts import get_system_prompt, get_user_prompt

__all__ = [
    "ContentGenerator",
    "get_system_prompt",
    "get_user_prompt",
]

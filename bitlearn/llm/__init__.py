"""LLM access: chat-completion client, retry wrapper and response parsing."""
from bitlearn.llm.client import (
    ApiCaller,
    ChatCompletionClient,
    ChatRequest,
    LLMNotConfiguredError,
    LLMResponseError,
)
from bitlearn.llm.parser import UNAVAILABLE, ParseOutcome, ResponseParser

__all__ = [
    "ApiCaller",
    "ChatCompletionClient",
    "ChatRequest",
    "LLMNotConfiguredError",
    "LLMResponseError",
    "ParseOutcome",
    "ResponseParser",
    "UNAVAILABLE",
]

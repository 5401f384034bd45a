"""
Chat-completion client with bounded retries.

Handles HTTP communication with an OpenAI-compatible chat-completion
endpoint (OpenRouter by default). The client itself never retries;
``ApiCaller`` wraps it with the retry budget of a single call site.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from loguru import logger

from bitlearn.config import RetryPolicy

T = TypeVar("T")


class LLMResponseError(Exception):
    """The endpoint answered but the payload carries no usable text."""


class LLMNotConfiguredError(Exception):
    """No API key is configured for the chat-completion endpoint."""


@dataclass
class ChatRequest:
    """Request payload for a single chat completion."""

    model: str
    messages: list[dict[str, str]]
    max_tokens: int | None = None
    timeout: float = 30.0

    @classmethod
    def from_prompts(
        cls,
        model: str,
        system: str,
        user: str,
        max_tokens: int | None = None,
        timeout: float = 30.0,
    ) -> ChatRequest:
        return cls(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            max_tokens=max_tokens,
            timeout=timeout,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert request to API payload format."""
        payload: dict[str, Any] = {"model": self.model, "messages": self.messages}
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        return payload


class ChatCompletionClient:
    """HTTP client for the chat-completion endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL of the API (``/chat/completions`` is appended)
            api_key: Bearer token sent with every request
            http_client: Optional pre-built ``httpx.AsyncClient``
        """
        self.base_url = base_url.rstrip("/")
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        self.client = http_client or httpx.AsyncClient(follow_redirects=True)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def complete(self, request: ChatRequest) -> str:
        """
        Send one chat completion and return the message text.

        Raises:
            httpx.HTTPError: On transport failure, timeout or non-2xx status
            LLMResponseError: When the response has no message content
        """
        response = await self.client.post(
            f"{self.base_url}/chat/completions",
            json=request.to_dict(),
            headers=self.headers,
            timeout=httpx.Timeout(request.timeout),
        )
        response.raise_for_status()

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMResponseError(f"Malformed completion payload: {e}") from e

        if not content or not str(content).strip():
            raise LLMResponseError("Empty completion content")
        return str(content)


class ApiCaller:
    """
    Performs a call with the retry budget of its call site.

    Attempt N that fails waits ``N * base_delay`` seconds before attempt N+1.
    After ``max_retries`` failed attempts the last error is re-raised; the
    caller decides on any fallback.
    """

    def __init__(
        self,
        client: ChatCompletionClient,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def call(self, request: ChatRequest, operation: str) -> str:
        """Run a chat completion with retries."""
        return await self.run(lambda: self.client.complete(request), operation)

    async def run(self, func: Callable[[], Awaitable[T]], operation: str) -> T:
        """Run any zero-argument coroutine factory with retries."""
        max_retries = max(1, self.retry_policy.max_retries)
        attempt = 1

        while True:
            logger.info(f"{operation} - attempt {attempt}/{max_retries}")
            try:
                result = await func()
            except Exception as e:  # Intentionally broad - every failure counts against the budget
                logger.warning(f"{operation} - attempt {attempt} failed: {e}")
                if attempt >= max_retries:
                    raise
                await self._sleep(self.retry_policy.base_delay * attempt)
                attempt += 1
                continue

            logger.info(f"{operation} - success on attempt {attempt}")
            return result

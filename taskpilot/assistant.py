"""External assistant client.

TaskPilot only needs one capability from a language model: send a prompt,
get text back. ``AssistantClient`` describes that seam so the task manager
can be driven by a scripted fake in tests; ``OpenAIAssistantClient`` talks
to any OpenAI-compatible chat completion endpoint.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

from .config import TaskPilotConfig
from .errors import AssistantError

logger = logging.getLogger("taskpilot.assistant")

SYSTEM_PROMPT = (
    "You are a project planning assistant for software development tasks. "
    "Answer with exactly one fenced JSON code block in the requested format."
)


class AssistantClient(Protocol):
    async def complete(self, prompt: str) -> str:
        ...


def _error_code(exc: Exception) -> Optional[str]:
    code = getattr(exc, "code", None)
    if code:
        return str(code)
    status = getattr(exc, "status_code", None)
    return str(status) if status is not None else None


def _classify(exc: openai.OpenAIError) -> AssistantError:
    code = _error_code(exc)
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AssistantError("Assistant authentication failed. Check TASKPILOT_API_KEY", code)
    if isinstance(exc, openai.RateLimitError):
        return AssistantError("Assistant is rate-limited. Try again later", code)
    if isinstance(exc, openai.NotFoundError):
        return AssistantError("Assistant model or endpoint not found. Check TASKPILOT_MODEL", code)
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError)):
        return AssistantError("Could not reach the assistant (network error or timeout)", code)
    return AssistantError(f"Assistant request failed: {exc}", code)


class OpenAIAssistantClient:
    """Chat completion client built on ``openai.AsyncOpenAI``.

    The SDK's automatic retries are disabled; a failed request is reported
    once and the user decides whether to run the command again.
    """

    def __init__(self, config: TaskPilotConfig, client: Optional[AsyncOpenAI] = None):
        self.model = config.assistant_model
        self._api_key = config.assistant_api_key
        self._base_url = config.assistant_base_url
        self._timeout = config.assistant_timeout
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise AssistantError(
                "Assistant API key is not set. Set TASKPILOT_API_KEY or OPENAI_API_KEY",
                "missing_api_key",
            )
        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=0,
        )
        return self._client

    async def complete(self, prompt: str) -> str:
        client = self._get_client()
        logger.info(f"Assistant request: model={self.model} prompt_chars={len(prompt)}")
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except openai.OpenAIError as e:
            error = _classify(e)
            logger.warning(f"Assistant request failed: {error}")
            raise error from e

        if not response.choices:
            raise AssistantError("Assistant returned no choices", "empty_response")
        content = response.choices[0].message.content
        if not content:
            raise AssistantError("Assistant returned an empty message", "empty_response")

        logger.debug(f"Assistant response: {len(content)} chars")
        return content

"""Test doubles shared across the TaskPilot test suite."""

from __future__ import annotations

from typing import List, Optional, Sequence, Union


class FakeAssistantClient:
    """
    Scripted assistant for tests.

    - Returns the queued responses in order (the last one repeats)
    - Raises a queued exception instead of answering when one is given
    - Captures prompts for assertions
    """

    def __init__(self, responses: Union[str, BaseException, Sequence[Union[str, BaseException]]] = "[]") -> None:
        if isinstance(responses, (str, BaseException)):
            responses = [responses]
        self.responses: List[Union[str, BaseException]] = list(responses)
        self.prompts: List[str] = []

    @property
    def last_prompt(self) -> Optional[str]:
        return self.prompts[-1] if self.prompts else None

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


def fenced(payload: str) -> str:
    """Wrap a JSON payload the way a chat model usually answers."""
    return f"Here is the result:\n\n```json\n{payload}\n```\n"

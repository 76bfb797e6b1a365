from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional, Protocol

from openai import AsyncOpenAI

from problem_api.config import Settings

logger = logging.getLogger("problemcapture.llm")


class AiResponseError(ValueError):
    """The completion service answered, but not with the JSON we asked for."""


class TextCompleter(Protocol):
    async def complete(self, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> str: ...


class OpenAICompleter:
    """Chat-completions backed TextCompleter. One call, no retries, wall-clock bounded."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_tokens: int = 1000,
        timeout_seconds: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self.temperature = float(temperature)
        self.max_tokens = int(max_tokens)
        self.timeout_seconds = float(timeout_seconds)
        self._client = client or AsyncOpenAI(api_key=api_key, max_retries=0, timeout=self.timeout_seconds)

    async def complete(self, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        response = await asyncio.wait_for(
            self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=int(max_tokens or self.max_tokens),
            ),
            timeout=self.timeout_seconds,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def aclose(self) -> None:
        await self._client.close()


def build_completer(settings: Settings) -> Optional[OpenAICompleter]:
    if not settings.ai_configured:
        logger.info("OPENAI_API_KEY not set; AI segmentation and ranking disabled")
        return None
    return OpenAICompleter(
        settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.ai_temperature,
        max_tokens=settings.ai_match_max_tokens,
        timeout_seconds=settings.ai_timeout_seconds,
    )


def _strip_code_fence(s: str) -> str:
    if not s.startswith("```"):
        return s
    body = s[3:]
    nl = body.find("\n")
    body = body[nl + 1:] if nl >= 0 else ""
    if body.rstrip().endswith("```"):
        body = body.rstrip()[:-3]
    return body.strip()


def parse_json_array(content: str) -> List[Any]:
    """
    Parse a reply that must be a JSON array. A surrounding code fence or prose
    around one outermost [...] is tolerated; the JSON itself is never repaired.
    """
    s = _strip_code_fence((content or "").strip())
    if not s:
        raise AiResponseError("empty response")

    try:
        data = json.loads(s)
    except json.JSONDecodeError:
        start, end = s.find("["), s.rfind("]")
        if start < 0 or end <= start:
            raise AiResponseError("no JSON array in response")
        try:
            data = json.loads(s[start:end + 1])
        except json.JSONDecodeError as e:
            raise AiResponseError(f"invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise AiResponseError(f"expected a JSON array, got {type(data).__name__}")
    return data

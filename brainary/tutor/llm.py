"""
Brainary — LLM Abstraction Layer
Async chat completions for question generation, exam feedback and topic
explanations. Optional JSON mode for structured output.
"""

import time
import logging
from typing import Protocol, Optional
from dataclasses import dataclass

from openai import AsyncOpenAI

from brainary.config import (
    OPENAI_API_KEY, LLM_MODEL, LLM_MAX_TOKENS, LLM_TEMPERATURE,
    LLM_PROVIDER,
)

logger = logging.getLogger(__name__)


@dataclass
class LLMResult:
    text: str
    latency_ms: int
    model: str
    usage: dict


class LLMProvider(Protocol):
    async def generate(self, messages: list[dict], **kwargs) -> LLMResult: ...


# ─── OpenAI ──────────────────────────────────────────────────────────────────

class OpenAIChat:
    def __init__(self, api_key: str = OPENAI_API_KEY, model: str = LLM_MODEL):
        self._client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def generate(
        self,
        messages: list[dict],
        max_tokens: int = LLM_MAX_TOKENS,
        temperature: float = LLM_TEMPERATURE,
        json_mode: bool = False,
    ) -> LLMResult:
        start = time.perf_counter()
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )
            elapsed = int((time.perf_counter() - start) * 1000)
            content = response.choices[0].message.content
            text = (content or "").strip()
            usage = {}
            if response.usage:
                usage = {
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens,
                }
            logger.info(f"LLM response: {elapsed}ms, {usage.get('total_tokens', '?')} tokens")
            return LLMResult(text=text, latency_ms=elapsed, model=self.model, usage=usage)
        except Exception as e:
            elapsed = int((time.perf_counter() - start) * 1000)
            logger.error(f"LLM error after {elapsed}ms: {e}")
            raise


# ─── Provider Factory ────────────────────────────────────────────────────────

_providers = {
    "openai": OpenAIChat,
}

_instance: Optional[LLMProvider] = None


def get_llm() -> LLMProvider:
    """Get the configured LLM provider (singleton)."""
    global _instance
    if _instance is None:
        provider_cls = _providers.get(LLM_PROVIDER)
        if not provider_cls:
            raise ValueError(f"Unknown LLM provider: {LLM_PROVIDER}")
        _instance = provider_cls()
    return _instance

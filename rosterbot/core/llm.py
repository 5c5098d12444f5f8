"""
Roster Bot — LLM Provider Abstraction.

Single public coroutine `complete()` that routes to the configured provider
and enforces the configured timeout. Provider is chosen from LLM_PROVIDER
on first use. Supports: anthropic (default), gemini, openai, cohere.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from rosterbot.ports.classifier_port import ClassifierError

logger = logging.getLogger(__name__)

_ProviderFn = Callable[[str, str, str, str, int], Awaitable[str]]


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_anthropic(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": user_message}],
    )
    return "".join(block.text for block in response.content if block.type == "text")


async def _complete_gemini(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(model_name=model, system_instruction=system)
    response = await gm.generate_content_async(
        user_message,
        generation_config=genai.types.GenerationConfig(max_output_tokens=max_tokens),
    )
    return response.text


async def _complete_openai(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.choices[0].message.content or ""


async def _complete_cohere(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.message.content[0].text


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Provider:
    fn: _ProviderFn
    default_model: str


_PROVIDERS: dict[str, _Provider] = {
    "anthropic": _Provider(_complete_anthropic, "claude-haiku-4-5-20251001"),
    "gemini":    _Provider(_complete_gemini,    "gemini-2.0-flash"),
    "openai":    _Provider(_complete_openai,    "gpt-4o-mini"),
    "cohere":    _Provider(_complete_cohere,    "command-a-03-2025"),
}


@dataclass
class _Client:
    fn: _ProviderFn
    model: str
    api_key: str
    timeout: float


def _build_client() -> _Client:
    """Read settings and bind the configured provider."""
    from rosterbot.config import settings

    name = settings.LLM_PROVIDER.lower()
    if name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={name!r}. Supported: {', '.join(_PROVIDERS)}"
        )
    provider = _PROVIDERS[name]
    model = settings.LLM_MODEL or provider.default_model
    logger.info("LLM provider: %s, model: %s", name, model)
    return _Client(provider.fn, model, settings.LLM_API_KEY, settings.LLM_TIMEOUT_SECONDS)


_client: _Client | None = None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(system: str, user_message: str, max_tokens: int = 256) -> str:
    """Send a prompt to the configured provider and return the response text.

    Raises ClassifierError on timeout; provider API errors propagate as-is.
    Callers decide how to degrade.
    """
    global _client

    if _client is None:
        _client = _build_client()

    try:
        return await asyncio.wait_for(
            _client.fn(_client.api_key, _client.model, system, user_message, max_tokens),
            timeout=_client.timeout,
        )
    except asyncio.TimeoutError as exc:
        raise ClassifierError(f"LLM call timed out after {_client.timeout}s") from exc

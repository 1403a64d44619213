"""
Completion client: OpenAI (primary) or Hugging Face (fallback).
When OPENAI_API_KEY is set, uses OpenAI chat completions; otherwise uses the HF router.

One capability serves three prompt shapes: agent decisions, relevance
judgments and final answer synthesis. Failures raise CompletionError.
"""

import logging
from typing import Protocol

import httpx

from pubapi_search.core.config import (
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
)
from pubapi_search.core.errors import CompletionError, ServiceUnavailableError

logger = logging.getLogger(__name__)


class Completer(Protocol):
    async def complete(self, prompt: str, max_tokens: int = 256) -> str: ...


class LLMClient:
    """Chat completion over OpenAI, falling back to the Hugging Face router."""

    def __init__(
        self,
        openai_api_key: str = OPENAI_API_KEY,
        hf_api_key: str = HF_API_KEY,
        openai_model: str = OPENAI_LLM_MODEL,
        hf_model: str = HF_LLM_MODEL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not openai_api_key and not hf_api_key:
            raise ServiceUnavailableError("Set OPENAI_API_KEY or HF_API_KEY in .env to use the LLM")
        self.openai_api_key = openai_api_key
        self.hf_api_key = hf_api_key
        self.openai_model = openai_model
        self.hf_model = hf_model
        self._openai = None
        self._http_client = http_client

    async def _post_hf(self, payload: dict, headers: dict) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(HF_CHAT_URL, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=LLM_API_TIMEOUT) as client:
            return await client.post(HF_CHAT_URL, json=payload, headers=headers)

    async def _call_openai(self, prompt: str, max_tokens: int) -> str:
        """Call OpenAI chat completions. Returns generated text ("" when the model said nothing)."""
        if self._openai is None:
            from openai import AsyncOpenAI

            self._openai = AsyncOpenAI(api_key=self.openai_api_key, timeout=LLM_API_TIMEOUT)
        response = await self._openai.chat.completions.create(
            model=self.openai_model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
        )
        msg = response.choices[0].message if response.choices else None
        out = ((msg.content if msg else None) or "").strip()
        logger.info("[llm:openai] OUT response_len=%d", len(out))
        return out

    async def _call_hf(self, prompt: str, max_tokens: int) -> str:
        """Call Hugging Face router chat completions. Returns generated text."""
        headers = {"Authorization": f"Bearer {self.hf_api_key}", "Content-Type": "application/json"}
        payload = {
            "model": self.hf_model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
        }
        response = await self._post_hf(payload, headers)
        if response.status_code != 200:
            raise CompletionError(f"HF LLM error {response.status_code}: {response.text[:200]}")
        try:
            data = response.json()
            choices = (data.get("choices") if isinstance(data, dict) else None) or []
            if choices and isinstance(choices[0], dict):
                msg = choices[0].get("message") or {}
                out = (msg.get("content") or "").strip()
                logger.info("[llm:hf] OUT response_len=%d", len(out))
                return out
        except (ValueError, AttributeError, TypeError) as e:
            raise CompletionError(f"malformed HF LLM reply: {response.text[:200]}") from e
        return ""

    async def complete(self, prompt: str, max_tokens: int = 256) -> str:
        """
        Generate text for prompt. Uses OpenAI when configured; if OpenAI fails or
        returns empty and an HF key is available, falls back to Hugging Face.

        Raises:
            CompletionError: if no provider produced a non-empty reply.
        """
        logger.info("[llm] IN  prompt_len=%d max_tokens=%d", len(prompt), max_tokens)
        logger.debug("[llm] prompt_sample=%r", prompt[:500])
        last_error: Exception | None = None
        if self.openai_api_key:
            try:
                out = await self._call_openai(prompt, max_tokens)
                if out:
                    return out
                logger.info("[llm] OpenAI returned empty")
            except Exception as e:
                last_error = e
                logger.warning("[llm:openai] request failed: %s", e)
        if self.hf_api_key:
            try:
                out = await self._call_hf(prompt, max_tokens)
                if out:
                    return out
                logger.info("[llm] Hugging Face returned empty")
            except CompletionError as e:
                last_error = e
                logger.warning("[llm:hf] %s", e)
            except httpx.HTTPError as e:
                last_error = e
                logger.warning("[llm:hf] request failed: %s", e)
        if last_error is not None:
            raise CompletionError(f"completion failed: {last_error}") from last_error
        raise CompletionError("completion returned no text")

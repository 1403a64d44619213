"""
Embedding client: OpenAI embeddings (primary) or Hugging Face Inference API (fallback).

Responsibility: Turn one text into one fixed-length vector. Every failure
surfaces as EmbeddingError; latency and retries are the caller's concern.
"""

import logging
from typing import Protocol

import httpx

from pubapi_search.core.config import (
    EMBED_API_TIMEOUT,
    HF_API_KEY,
    HF_EMBED_MODEL,
    OPENAI_API_KEY,
    OPENAI_EMBED_MODEL,
)
from pubapi_search.core.errors import EmbeddingError, ServiceUnavailableError

logger = logging.getLogger(__name__)

HF_API_URL_ROUTER = (
    "https://router.huggingface.co/hf-inference/models/"
    f"{HF_EMBED_MODEL}/pipeline/feature-extraction"
)
HF_API_URL_STANDARD = f"https://api-inference.huggingface.co/models/{HF_EMBED_MODEL}"


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def _normalize(vec: list[float]) -> list[float]:
    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        return list(vec)
    return [x / norm for x in vec]


class OpenAIEmbedder:
    """Embeddings via the OpenAI embeddings endpoint (text-embedding-3-large by default)."""

    def __init__(self, api_key: str = OPENAI_API_KEY, model: str = OPENAI_EMBED_MODEL) -> None:
        if not api_key:
            raise ServiceUnavailableError("OPENAI_API_KEY must be set in .env to use OpenAI embeddings")
        from openai import AsyncOpenAI

        self.model = model
        self._client = AsyncOpenAI(api_key=api_key, timeout=EMBED_API_TIMEOUT)

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(model=self.model, input=text)
        except Exception as e:
            raise EmbeddingError(f"OpenAI embedding request failed: {e}") from e
        if not response.data:
            raise EmbeddingError("OpenAI embedding response had no data")
        return list(response.data[0].embedding)


class HFEmbedder:
    """
    Embeddings via the Hugging Face Inference API (all-MiniLM-L6-v2).

    Tries the router URL first and falls back to the standard inference URL on 403.
    Returns vectors normalized for cosine similarity.
    """

    def __init__(self, api_key: str = HF_API_KEY, http_client: httpx.AsyncClient | None = None) -> None:
        if not api_key:
            raise ServiceUnavailableError(
                "HF_API_KEY must be set in .env. Get a token from https://huggingface.co/settings/tokens"
            )
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._http_client = http_client

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> tuple[httpx.Response | None, str | None]:
        """Router URL first; the standard URL only when the router refuses (403) or is unreachable."""
        api_urls = [HF_API_URL_ROUTER, HF_API_URL_STANDARD]
        response = None
        last_error: str | None = None
        for api_url in api_urls:
            try:
                response = await client.post(api_url, json=payload, headers=self._headers)
                if response.status_code == 200:
                    break
                if response.status_code == 403 and api_url == HF_API_URL_ROUTER:
                    last_error = response.text
                    continue
                break
            except httpx.HTTPError as e:
                last_error = str(e)
                if api_url == api_urls[-1]:
                    raise EmbeddingError(f"HF embedding request failed: {e}") from e
                continue
        return response, last_error

    async def embed(self, text: str) -> list[float]:
        payload = {"inputs": [text], "options": {"wait_for_model": True}}
        if self._http_client is not None:
            response, last_error = await self._post(self._http_client, payload)
        else:
            async with httpx.AsyncClient(timeout=EMBED_API_TIMEOUT) as client:
                response, last_error = await self._post(client, payload)

        if response is None or response.status_code != 200:
            msg = response.text if response is not None else last_error
            if response is not None and response.status_code == 503:
                raise EmbeddingError(f"HF model is loading. Retry later. {msg}")
            if response is not None and response.status_code == 401:
                raise EmbeddingError("Invalid HF API key. Check HF_API_KEY")
            raise EmbeddingError(f"HF API error: {msg}")

        try:
            result = response.json()
        except ValueError as e:
            raise EmbeddingError(f"HF embedding reply is not JSON: {response.text[:200]}") from e
        if isinstance(result, list) and result and isinstance(result[0], list):
            vec = result[0]
        elif isinstance(result, list):
            vec = result
        else:
            raise EmbeddingError(f"unexpected HF embedding payload: {str(result)[:200]}")
        try:
            return _normalize([float(x) for x in vec])
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"unexpected HF embedding payload: {str(result)[:200]}") from e


def default_embedder() -> Embedder:
    """OpenAI when OPENAI_API_KEY is set, otherwise Hugging Face."""
    if OPENAI_API_KEY:
        return OpenAIEmbedder()
    return HFEmbedder()

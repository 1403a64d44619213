"""
Endpoint fetcher: GET a page, decode its payload, derive a title.

Used by the indexer (crawl) and the browser (navigate). Failures are
per-endpoint FetchErrors, never fatal to a batch.
"""

import json
import logging
from typing import Any

import httpx

from pubapi_search.core.config import FETCH_TIMEOUT
from pubapi_search.core.errors import FetchError
from pubapi_search.schemas.documents import Endpoint, WebPage

logger = logging.getLogger(__name__)


def derive_title(content: Any, endpoint: Endpoint) -> str:
    """OpenAPI specs carry info.title; anything else is titled by its URL."""
    if isinstance(content, dict):
        info = content.get("info")
        if isinstance(info, dict) and isinstance(info.get("title"), str) and info["title"].strip():
            return info["title"].strip()
        if isinstance(content.get("title"), str) and content["title"].strip():
            return content["title"].strip()
    return endpoint.url


class Fetcher:
    """Fetch endpoints over HTTP with a shared httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = FETCH_TIMEOUT) -> None:
        self._client = client
        self._timeout = timeout

    async def _get(self, endpoint: Endpoint) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(endpoint.url)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(endpoint.url)

    async def fetch(self, endpoint: Endpoint) -> WebPage:
        """
        Fetch one endpoint. JSON bodies are decoded; other bodies are kept as text.

        Raises:
            FetchError: on transport errors or non-2xx responses.
        """
        logger.info("[fetcher:fetch] IN  url=%s", endpoint.url)
        try:
            response = await self._get(endpoint)
        except httpx.HTTPError as e:
            raise FetchError(endpoint.url, f"request failed: {e}") from e
        if response.status_code >= 400:
            raise FetchError(endpoint.url, f"HTTP {response.status_code}: {response.text[:200]}")
        try:
            content: Any = response.json()
        except (json.JSONDecodeError, ValueError):
            content = response.text
        title = derive_title(content, endpoint)
        logger.info("[fetcher:fetch] OUT url=%s title=%r", endpoint.url, title)
        return WebPage(endpoint=endpoint, title=title, content=content)

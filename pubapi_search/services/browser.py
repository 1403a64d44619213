"""
Browser: the concurrency-governed façade the agent searches and browses through.

Every operation (search, navigate, open) holds one slot of the browser's
limiter, so callers sharing a Browser never exceed max_concurrency in flight.
"""

import json
import logging

from pubapi_search.core.concurrency import ConcurrencyLimiter
from pubapi_search.core.config import BROWSER_MAX_CONCURRENCY
from pubapi_search.schemas.documents import Document, Endpoint
from pubapi_search.schemas.search import SearchOptions, SearchResult
from pubapi_search.services.fetcher import Fetcher
from pubapi_search.services.retrieval_service import SearchEngine

logger = logging.getLogger(__name__)


class Browser:
    def __init__(
        self,
        engine: SearchEngine,
        max_concurrency: int = BROWSER_MAX_CONCURRENCY,
        fetcher: Fetcher | None = None,
        default_options: SearchOptions | None = None,
    ) -> None:
        self.engine = engine
        self.fetcher = fetcher or Fetcher()
        self.default_options = default_options
        self.limiter = ConcurrencyLimiter(max_concurrency, name="browser")

    @property
    def max_concurrency(self) -> int:
        return self.limiter.max_concurrency

    def document(self, document_id: str) -> Document | None:
        """Resolve a SearchResult's document reference."""
        return self.engine.store.get(document_id)

    async def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        """
        Same semantics as SearchEngine.search, admitted through the browser's limiter.

        Raises:
            ConcurrencyCancelledError: if cancelled while queued or in flight.
        """
        options = options or self.default_options
        async with self.limiter.slot():
            logger.info("[browser:search] query=%r in_flight=%d", query, self.limiter.in_flight)
            return await self.engine.search(query, options)

    async def navigate(self, endpoint: Endpoint) -> str:
        """Fetch a page and return its payload as compact text (JSON for specs)."""
        async with self.limiter.slot():
            logger.info("[browser:navigate] url=%s", endpoint.url)
            page = await self.fetcher.fetch(endpoint)
        if isinstance(page.content, str):
            return page.content
        return json.dumps(page.content, separators=(",", ":"))

    async def open(self, document_id: str) -> str:
        """
        Navigate to the endpoint a document was indexed from.

        Raises:
            KeyError: if no document has this ID.
        """
        document = self.document(document_id)
        if document is None:
            raise KeyError(f"unknown document id: {document_id}")
        return await self.navigate(document.endpoint)

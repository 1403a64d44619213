"""
Indexing: turn fetched pages into embedded, searchable documents.

Responsibility: Project each page to text, optionally summarize it with the
LLM, embed it, and build a Document. Items run under a bounded concurrency
limit; a failing item is reported and skipped, never aborting the batch.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from pubapi_search.agent.llm import Completer
from pubapi_search.core.concurrency import ConcurrencyLimiter
from pubapi_search.core.config import MAX_CONCURRENCY, SAMPLE_PATHS
from pubapi_search.core.errors import (
    CompletionError,
    EmbeddingError,
    FetchError,
    IndexFailedError,
    PartialIndexError,
)
from pubapi_search.schemas.documents import Document, Endpoint, WebPage, document_id_for
from pubapi_search.services.embeddings import Embedder
from pubapi_search.services.fetcher import Fetcher
from pubapi_search.services.text_processing import build_embedding_text, summary_prompt

logger = logging.getLogger(__name__)


@dataclass
class EndpointError:
    """Why one endpoint did not produce a document."""

    endpoint: Endpoint
    stage: str  # fetch | summarize | embed
    message: str


@dataclass
class IndexResult:
    """Documents in input order plus per-endpoint failures."""

    documents: list[Document] = field(default_factory=list)
    errors: list[EndpointError] = field(default_factory=list)

    @property
    def error(self) -> PartialIndexError | None:
        """The failures as a reportable error, or None when every item indexed."""
        return PartialIndexError(self.errors) if self.errors else None


class Indexer:
    """Build Documents from pages with at most max_concurrency items in flight."""

    def __init__(
        self,
        embedder: Embedder,
        completion: Completer | None = None,
        max_concurrency: int = MAX_CONCURRENCY,
        summarize: bool = False,
        sample_paths: int = SAMPLE_PATHS,
    ) -> None:
        if summarize and completion is None:
            raise ValueError("summarize=True requires a completion client")
        self.embedder = embedder
        self.completion = completion
        self.summarize = summarize
        self.sample_paths = sample_paths
        self.limiter = ConcurrencyLimiter(max_concurrency, name="indexer")

    async def _summary_text(self, page: WebPage) -> str:
        if not self.summarize:
            return build_embedding_text(page.title, page.content, self.sample_paths)
        prompt = summary_prompt(page.title, page.content, self.sample_paths)
        summary = await self.completion.complete(prompt, max_tokens=256)
        return f"{page.title}\n{summary}".strip() if page.title else summary

    async def _index_page(self, page: WebPage) -> Document | EndpointError:
        url = page.endpoint.url
        try:
            text = await self._summary_text(page)
        except CompletionError as e:
            logger.warning("[indexer:index_page] summarize failed url=%s: %s", url, e)
            return EndpointError(page.endpoint, "summarize", e.message)
        if not text:
            return EndpointError(page.endpoint, "embed", "page produced no text to embed")
        try:
            embedding = await self.embedder.embed(text)
        except EmbeddingError as e:
            logger.warning("[indexer:index_page] embed failed url=%s: %s", url, e)
            return EndpointError(page.endpoint, "embed", e.message)
        return Document(
            id=document_id_for(page.endpoint),
            title=page.title,
            summary=text,
            content=page.content,
            embedding=embedding,
            endpoint=page.endpoint,
        )

    async def index_pages(self, pages: Sequence[WebPage]) -> IndexResult:
        """
        Index pages in parallel.

        Returns:
            IndexResult with successes in input order and every failure. When
            the same endpoint appears more than once, the last page wins.

        Raises:
            IndexFailedError: if at least one item failed and none succeeded.
        """
        logger.info("[indexer:index_pages] IN  pages=%d max_concurrency=%d", len(pages), self.limiter.max_concurrency)
        outcomes = await self.limiter.gather(
            [lambda p=page: self._index_page(p) for page in pages]
        )
        return self._collect(outcomes)

    async def index_endpoints(self, endpoints: Iterable[Endpoint], fetcher: Fetcher) -> IndexResult:
        """Fetch each endpoint and index it; fetch failures are per-endpoint errors."""
        endpoints = list(endpoints)
        logger.info("[indexer:index_endpoints] IN  endpoints=%d", len(endpoints))

        async def fetch_and_index(endpoint: Endpoint) -> Document | EndpointError:
            try:
                page = await fetcher.fetch(endpoint)
            except FetchError as e:
                logger.warning("[indexer:index_endpoints] fetch failed: %s", e)
                return EndpointError(endpoint, "fetch", e.message)
            return await self._index_page(page)

        outcomes = await self.limiter.gather(
            [lambda e=endpoint: fetch_and_index(e) for endpoint in endpoints]
        )
        return self._collect(outcomes)

    @staticmethod
    def _collect(outcomes: list) -> IndexResult:
        by_id: dict[str, Document] = {}
        errors: list[EndpointError] = []
        for outcome in outcomes:
            if isinstance(outcome, EndpointError):
                errors.append(outcome)
            else:
                by_id[outcome.id] = outcome
        result = IndexResult(documents=list(by_id.values()), errors=errors)
        logger.info("[indexer] OUT documents=%d errors=%d", len(result.documents), len(result.errors))
        if errors and not result.documents:
            raise IndexFailedError(errors)
        return result

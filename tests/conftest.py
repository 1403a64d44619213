"""
Shared fakes: in-memory embedding and completion capabilities so tests never
touch OpenAI, Hugging Face or the network.
"""

import asyncio
from typing import Callable

import pytest

from pubapi_search.core.errors import CompletionError, EmbeddingError
from pubapi_search.schemas.documents import Document, Endpoint, document_id_for
from pubapi_search.schemas.search import SearchOptions
from pubapi_search.services.browser import Browser
from pubapi_search.services.document_store import DocumentStore
from pubapi_search.services.retrieval_service import SearchEngine


class FakeEmbedder:
    """Returns the vector of the first key contained in the text; tracks concurrency."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        fail_on: tuple[str, ...] = (),
        delay: float = 0.0,
    ) -> None:
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0]
        self.fail_on = fail_on
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.peak = 0

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if any(key in text for key in self.fail_on):
                raise EmbeddingError(f"embedding failed for {text[:30]!r}")
            if text in self.vectors:
                return list(self.vectors[text])
            for key, vec in self.vectors.items():
                if key in text:
                    return list(vec)
            return list(self.default)
        finally:
            self.in_flight -= 1


class FakeCompletion:
    """
    Replies from a script (list, consumed in order) or a responder(prompt) function.
    An Exception in the script is raised instead of returned.
    """

    def __init__(
        self,
        replies: list | None = None,
        responder: Callable[[str], str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.replies = list(replies or [])
        self.responder = responder
        self.delay = delay
        self.prompts: list[str] = []
        self.in_flight = 0
        self.peak = 0

    async def complete(self, prompt: str, max_tokens: int = 256) -> str:
        self.prompts.append(prompt)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.responder is not None:
                reply = self.responder(prompt)
            elif self.replies:
                reply = self.replies.pop(0)
            else:
                raise CompletionError("script exhausted")
            if isinstance(reply, Exception):
                raise reply
            return reply
        finally:
            self.in_flight -= 1


def make_doc(title: str, embedding: list[float], url: str | None = None, summary: str = "") -> Document:
    endpoint = Endpoint.parse(url or f"http://{title.lower().replace(' ', '-')}.local:8000/")
    return Document(
        id=document_id_for(endpoint),
        title=title,
        summary=summary or f"{title} API",
        content={"info": {"title": title}},
        embedding=embedding,
        endpoint=endpoint,
    )


@pytest.fixture
def abc_store() -> DocumentStore:
    """Three documents A, B, C with embeddings [1,0], [0,1], [0.7,0.7]."""
    return DocumentStore([
        make_doc("A", [1.0, 0.0]),
        make_doc("B", [0.0, 1.0]),
        make_doc("C", [0.7, 0.7]),
    ])


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder(default=[1.0, 0.0])


@pytest.fixture
def browser(abc_store: DocumentStore, embedder: FakeEmbedder) -> Browser:
    return Browser(
        SearchEngine(abc_store, embedder),
        max_concurrency=2,
        default_options=SearchOptions(max_num_results=2, use_verification=False),
    )

"""
Agent service: wire an index into a search engine, browser and agent.

Responsibility: Build the object graph once from a persisted index (and the
configured LLM/embedding clients) for the API and CLI. No HTTP here.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from pubapi_search.agent.graph import BrowsingAgent
from pubapi_search.agent.llm import Completer, LLMClient
from pubapi_search.core.config import AGENT_MAX_RETRIES, AGENT_MAX_STEPS, BROWSER_MAX_CONCURRENCY, USE_VERIFICATION
from pubapi_search.core.errors import ServiceUnavailableError
from pubapi_search.schemas.search import SearchOptions
from pubapi_search.services.browser import Browser
from pubapi_search.services.document_store import DocumentStore, load_index
from pubapi_search.services.embeddings import Embedder, default_embedder
from pubapi_search.services.retrieval_service import SearchEngine

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    browser: Browser
    agent: BrowsingAgent | None


def default_completion() -> Completer | None:
    """The configured LLM, or None when no provider key is set."""
    try:
        return LLMClient()
    except ServiceUnavailableError as e:
        logger.warning("[agent_service] LLM unavailable: %s", e.message)
        return None


def build_runtime(
    store: DocumentStore,
    embedder: Embedder | None = None,
    completion: Completer | None = None,
    max_concurrency: int = BROWSER_MAX_CONCURRENCY,
    max_steps: int = AGENT_MAX_STEPS,
    max_retries: int = AGENT_MAX_RETRIES,
) -> Runtime:
    """Store -> engine -> browser -> agent. The agent is None without a completion client."""
    engine = SearchEngine(store, embedder or default_embedder(), completion)
    # verification needs a judge; without one the browser searches on similarity alone
    default_options = SearchOptions(use_verification=USE_VERIFICATION and completion is not None)
    browser = Browser(engine, max_concurrency=max_concurrency, default_options=default_options)
    agent = BrowsingAgent(completion, max_steps=max_steps, max_retries=max_retries) if completion else None
    logger.info(
        "[agent_service:build_runtime] documents=%d browser_concurrency=%d agent=%s",
        len(store), max_concurrency, agent is not None,
    )
    return Runtime(browser=browser, agent=agent)


def load_runtime(index_path: str | Path, **kwargs) -> Runtime:
    """Load the persisted index at index_path and build the runtime around it."""
    store = load_index(index_path)
    if "completion" not in kwargs:
        kwargs["completion"] = default_completion()
    return build_runtime(store, **kwargs)

"""
API handlers: call services and map their errors to HTTP.

Responsibility: Bridge HTTP types and services. Exception-to-HTTP mapping lives
here so services stay free of FastAPI/HTTP types.
"""

import logging

from fastapi import HTTPException

from pubapi_search.agent.graph import BrowsingAgent
from pubapi_search.core.errors import (
    AgentFailedError,
    CompletionError,
    DimensionMismatchError,
    EmbeddingError,
    ServiceUnavailableError,
    StepBudgetExceededError,
)
from pubapi_search.schemas.query import SearchRequest, SearchResponse, SolveResponse
from pubapi_search.schemas.search import SearchOptions
from pubapi_search.services.browser import Browser

logger = logging.getLogger(__name__)


def _require(browser: Browser | None) -> Browser:
    if browser is None:
        raise HTTPException(status_code=503, detail="No search index loaded. Set INDEX_PATH and restart.")
    return browser


async def handle_search(browser: Browser | None, body: SearchRequest) -> SearchResponse:
    """Run one browser-mediated search; 400 bad input, 500 config error, 502 upstream failure."""
    browser = _require(browser)
    query = body.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="query must not be blank")
    options = browser.default_options.model_copy() if browser.default_options else SearchOptions()
    if body.max_num_results is not None:
        options.max_num_results = body.max_num_results
    if body.use_verification is not None:
        options.use_verification = body.use_verification
    try:
        results = await browser.search(query, options)
    except DimensionMismatchError as e:
        logger.exception("Index/embedding model mismatch")
        raise HTTPException(status_code=500, detail=e.message) from e
    except ServiceUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    except EmbeddingError as e:
        raise HTTPException(status_code=502, detail=f"query embedding failed: {e.message}") from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return SearchResponse(results=results)


async def handle_solve(browser: Browser | None, agent: BrowsingAgent | None, query: str) -> SolveResponse:
    """Run the browsing agent; 504 when it hits its step budget, 502 when a phase fails."""
    browser = _require(browser)
    if agent is None:
        raise HTTPException(status_code=503, detail="Agent unavailable: no LLM configured.")
    query = query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="query must not be blank")
    try:
        state = await agent.run(query, browser)
    except StepBudgetExceededError as e:
        raise HTTPException(status_code=504, detail=e.message) from e
    except AgentFailedError as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    except DimensionMismatchError as e:
        logger.exception("Index/embedding model mismatch")
        raise HTTPException(status_code=500, detail=e.message) from e
    except (EmbeddingError, CompletionError) as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    return SolveResponse(answer=state["answer"], steps=state["step"])

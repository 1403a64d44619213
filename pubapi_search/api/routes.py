"""
API route aggregator: register endpoints and delegate to handlers. No logic here.
"""

import logging

from fastapi import APIRouter, Request

from pubapi_search.api.handlers import handle_search, handle_solve
from pubapi_search.schemas.query import SearchRequest, SearchResponse, SolveRequest, SolveResponse

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "API search engine running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Index ---

@router.get("/sources", tags=["index"], summary="List indexed API titles")
def get_sources(request: Request) -> dict:
    """Return the loaded index's stats (document count, dimension, titles)."""
    browser = request.app.state.browser
    if browser is None:
        return {"total_documents": 0, "dimension": None, "titles": []}
    return browser.engine.store.stats()


# --- Search / agent ---

@router.post(
    "/search",
    response_model=SearchResponse,
    tags=["search"],
    summary="Rank indexed APIs against a query",
    description="Embedding search with optional LLM verification. 503 when no index is loaded.",
)
async def post_search(body: SearchRequest, request: Request) -> SearchResponse:
    logger.info("[api:post_search] IN  query=%r", body.query)
    return await handle_search(request.app.state.browser, body)


@router.post(
    "/solve",
    response_model=SolveResponse,
    tags=["agent"],
    summary="Run the browsing agent",
    description="Search, browse and synthesize an answer. 504 when the step budget runs out.",
)
async def post_solve(body: SolveRequest, request: Request) -> SolveResponse:
    logger.info("[api:post_solve] IN  query=%r", body.query)
    return await handle_solve(request.app.state.browser, request.app.state.agent, body.query)

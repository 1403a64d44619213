"""Schemas for the search and solve endpoints."""

from pydantic import BaseModel, Field

from pubapi_search.schemas.search import SearchResult


class SearchRequest(BaseModel):
    """Request body for POST /search."""

    query: str = Field(..., min_length=1, description="Natural-language description of the desired API.")
    max_num_results: int | None = Field(None, description="Override the configured result limit.")
    use_verification: bool | None = Field(None, description="Override whether results are LLM-verified.")


class SearchResponse(BaseModel):
    """Response for POST /search."""

    results: list[SearchResult] = Field(default_factory=list)


class SolveRequest(BaseModel):
    """Request body for POST /solve."""

    query: str = Field(..., min_length=1, description="Task for the browsing agent.")


class SolveResponse(BaseModel):
    """Response for POST /solve."""

    answer: str = Field(..., description="Final answer synthesized by the agent.")
    steps: int = Field(0, description="Search/visit steps taken before concluding.")

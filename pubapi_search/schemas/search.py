"""Schemas for search options and ranked results."""

from enum import Enum

from pydantic import BaseModel, Field

from pubapi_search.core.config import (
    MAX_CONCURRENCY,
    MAX_NUM_RESULTS,
    USE_VERIFICATION,
    VERIFICATION_FAIL_OPEN,
)


class VerificationPolicy(str, Enum):
    """What to do with a candidate whose relevance judgment failed."""

    FAIL_OPEN = "fail_open"  # keep it with its original score
    FAIL_CLOSED = "fail_closed"  # drop it


def _default_policy() -> VerificationPolicy:
    return VerificationPolicy.FAIL_OPEN if VERIFICATION_FAIL_OPEN else VerificationPolicy.FAIL_CLOSED


class SearchOptions(BaseModel):
    """Per-call search options."""

    max_num_results: int = Field(MAX_NUM_RESULTS, description="Return at most this many results (<= 0 returns none).")
    max_concurrency: int = Field(MAX_CONCURRENCY, ge=1, description="Concurrent relevance judgments.")
    use_verification: bool = Field(USE_VERIFICATION, description="Judge each top candidate with the LLM.")
    verification_policy: VerificationPolicy = Field(default_factory=_default_policy)


class Verdict(BaseModel):
    """Outcome of one relevance judgment."""

    relevant: bool
    rationale: str = ""
    fail_open: bool = Field(False, description="True when the judgment failed and the candidate was kept anyway.")


class SearchResult(BaseModel):
    """
    One ranked hit. Refers to its document by ID only; the Document Store owns
    the document. Scores are only comparable within one query against one store.
    """

    document_id: str
    title: str = ""
    score: float
    verdict: Verdict | None = None

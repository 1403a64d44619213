"""
Application errors, one type per failing phase.

Batch work (indexing, verification) isolates and reports per-item errors;
single-shot calls (query embedding, agent decide/conclude) raise them.
"""

import asyncio


class PubAPISearchError(Exception):
    """Base class for search engine and agent errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ServiceUnavailableError(PubAPISearchError):
    """Raised when a required service (embeddings API, LLM) is unavailable or misconfigured."""


class EmbeddingError(PubAPISearchError):
    """The embedding capability failed for one text."""


class CompletionError(PubAPISearchError):
    """The completion capability failed (decision, judgment or synthesis)."""


class DirectiveParseError(CompletionError):
    """The model replied, but no valid directive could be parsed from the reply."""

    def __init__(self, message: str, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)


class DimensionMismatchError(PubAPISearchError):
    """Embedding dimensions differ. A configuration error, never coerced."""

    def __init__(self, expected: int, actual: int, context: str = "") -> None:
        self.expected = expected
        self.actual = actual
        where = f" ({context})" if context else ""
        super().__init__(f"embedding dimension mismatch{where}: expected {expected}, got {actual}")


class FetchError(PubAPISearchError):
    """Fetching an endpoint failed or returned unusable content."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(f"{url}: {message}")


class PartialIndexError(PubAPISearchError):
    """Some endpoints failed to index. Reported alongside the produced documents."""

    def __init__(self, errors: list) -> None:
        self.errors = list(errors)
        urls = ", ".join(e.endpoint.url for e in self.errors[:5])
        more = f" (+{len(self.errors) - 5} more)" if len(self.errors) > 5 else ""
        super().__init__(f"{len(self.errors)} endpoint(s) failed to index: {urls}{more}")


class IndexFailedError(PartialIndexError):
    """Every endpoint in the batch failed; no documents were produced."""


class StepBudgetExceededError(PubAPISearchError):
    """The agent loop hit its step cap without a conclude directive."""

    def __init__(self, max_steps: int) -> None:
        self.max_steps = max_steps
        super().__init__(f"agent did not conclude within {max_steps} steps")


class AgentFailedError(PubAPISearchError):
    """An agent phase failed after its retry budget was spent."""

    def __init__(self, phase: str, cause: Exception) -> None:
        self.phase = phase
        self.cause = cause
        super().__init__(f"agent {phase} step failed: {cause}")


class ConcurrencyCancelledError(asyncio.CancelledError):
    """Cancellation observed while queued for, or holding, a concurrency slot."""

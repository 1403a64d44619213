"""
Retrieval: dense-embedding ranking with an optional LLM verification pass.

Responsibility: Embed the query, rank every document by cosine similarity,
optionally judge the top candidates for relevance, and truncate.
Per call: EmbedQuery -> Rank -> (Verify) -> Truncate. Nothing is kept between calls.
"""

import logging

import numpy as np

from pubapi_search.agent.llm import Completer
from pubapi_search.core.concurrency import ConcurrencyLimiter
from pubapi_search.core.errors import CompletionError, DimensionMismatchError
from pubapi_search.schemas.documents import Document
from pubapi_search.schemas.search import SearchOptions, SearchResult, Verdict, VerificationPolicy
from pubapi_search.services.document_store import DocumentStore
from pubapi_search.services.embeddings import Embedder

logger = logging.getLogger(__name__)

VERIFY_INSTRUCTION = (
    "Determine if the search result is relevant to the query. The query is searching an index "
    "of public API specs for a set of public APIs that will at least partially satisfy the "
    "desired behavior. Answer YES or NO on the first line, then give a one-sentence reason."
)


def cosine_similarity(a, b) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero norm."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def rank(query_embedding: list[float], store: DocumentStore) -> list[tuple[int, float]]:
    """
    (document index, score) for every document, best first.

    Ties keep insertion order (stable sort), so a fixed store and query always
    rank the same way.
    """
    if len(store) == 0:
        return []
    query = np.asarray(query_embedding, dtype=float)
    if query.shape[0] != store.dimension:
        raise DimensionMismatchError(store.dimension, query.shape[0], context="query vs index")
    matrix = store.matrix
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)
    order = np.argsort(-scores, kind="stable")
    return [(int(i), float(scores[i])) for i in order]


def parse_verdict(reply: str) -> Verdict:
    """
    First word YES/NO decides; the rest is the rationale.

    Raises:
        CompletionError: if the reply does not start with YES or NO.
    """
    text = (reply or "").strip()
    first_line, _, rest = text.partition("\n")
    words = first_line.strip().strip("*").split(None, 1)
    head = words[0].strip(".,:;!*\"'").upper() if words else ""
    rationale = " ".join(part for part in (words[1] if len(words) > 1 else "", rest.strip()) if part).strip(" -:.")
    if head in ("YES", "Y", "TRUE", "RELEVANT"):
        return Verdict(relevant=True, rationale=rationale)
    if head in ("NO", "N", "FALSE", "IRRELEVANT"):
        return Verdict(relevant=False, rationale=rationale)
    raise CompletionError(f"unparseable relevance verdict: {text[:120]!r}")


class SearchEngine:
    """Ranks a read-only DocumentStore against queries."""

    def __init__(self, store: DocumentStore, embedder: Embedder, completion: Completer | None = None) -> None:
        self.store = store
        self.embedder = embedder
        self.completion = completion

    async def _judge(self, query: str, document: Document) -> Verdict:
        prompt = (
            f"{VERIFY_INSTRUCTION}\n\nQuery:\n{query}\n\n"
            f"Public API spec summary:\n{document.title}\n{document.summary}"
        )
        reply = await self.completion.complete(prompt, max_tokens=64)
        return parse_verdict(reply)

    async def verify(
        self,
        query: str,
        candidates: list[SearchResult],
        max_concurrency: int,
        policy: VerificationPolicy = VerificationPolicy.FAIL_OPEN,
    ) -> list[SearchResult]:
        """
        Judge each candidate independently and drop the irrelevant ones.

        A failed judgment keeps the candidate with its original score and a
        fail_open verdict under FAIL_OPEN, and drops it under FAIL_CLOSED.
        Order of the survivors is unchanged.
        """
        if self.completion is None:
            raise ValueError("verification requires a completion client")
        limiter = ConcurrencyLimiter(max_concurrency, name="verify")

        async def judge_one(candidate: SearchResult) -> SearchResult | None:
            document = self.store.get(candidate.document_id)
            try:
                verdict = await self._judge(query, document)
            except CompletionError as e:
                if policy is VerificationPolicy.FAIL_CLOSED:
                    logger.warning("[retrieval:verify] judgment failed, dropping id=%s: %s", candidate.document_id, e)
                    return None
                logger.warning("[retrieval:verify] judgment failed, keeping id=%s: %s", candidate.document_id, e)
                return candidate.model_copy(
                    update={"verdict": Verdict(relevant=True, rationale=f"verification failed: {e.message}", fail_open=True)}
                )
            if not verdict.relevant:
                logger.info("[retrieval:verify] dropped id=%s title=%r", candidate.document_id, candidate.title)
                return None
            return candidate.model_copy(update={"verdict": verdict})

        judged = await limiter.gather([lambda c=c: judge_one(c) for c in candidates])
        return [r for r in judged if r is not None]

    async def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        """
        Rank the store against query and return at most options.max_num_results results.

        Raises:
            EmbeddingError: if the query cannot be embedded.
            DimensionMismatchError: if the query embedding does not match the store.
        """
        options = options or SearchOptions()
        logger.info(
            "[retrieval:search] IN  query=%r n=%d verify=%s docs=%d",
            query, options.max_num_results, options.use_verification, len(self.store),
        )
        if options.max_num_results <= 0 or len(self.store) == 0:
            logger.info("[retrieval:search] OUT nothing to rank, returning []")
            return []
        if options.use_verification and self.completion is None:
            raise ValueError("use_verification=True requires a completion client")

        query_embedding = await self.embedder.embed(query)
        ranked = rank(query_embedding, self.store)

        documents = self.store.documents
        candidates = [
            SearchResult(document_id=documents[i].id, title=documents[i].title, score=score)
            for i, score in ranked[: options.max_num_results]
        ]
        logger.info(
            "[retrieval:search] ranked top=%s",
            [(c.title, round(c.score, 4)) for c in candidates],
        )
        if options.use_verification:
            candidates = await self.verify(
                query, candidates, options.max_concurrency, options.verification_policy
            )
        results = candidates[: options.max_num_results]
        logger.info("[retrieval:search] OUT results=%d", len(results))
        return results

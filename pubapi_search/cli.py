#!/usr/bin/env python3
"""
Command-line entry points: build an index, search it, or run the browsing agent.

    pubapi-search index --endpoints-path endpoints.json --output-path index.json
    pubapi-search search --index index.json --query "send an sms" -n 5
    pubapi-search solve --index index.json --query "book a ride to the airport"

Exits non-zero on any fatal error; nothing partial is printed to stdout then.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pubapi_search.core.config import AGENT_MAX_STEPS, MAX_CONCURRENCY, MAX_NUM_RESULTS
from pubapi_search.core.errors import (
    AgentFailedError,
    CompletionError,
    DimensionMismatchError,
    EmbeddingError,
    IndexFailedError,
    PubAPISearchError,
    StepBudgetExceededError,
)
from pubapi_search.schemas.documents import Endpoint
from pubapi_search.schemas.search import SearchOptions, VerificationPolicy
from pubapi_search.services.agent_service import default_completion, load_runtime
from pubapi_search.services.document_store import save_index
from pubapi_search.services.embeddings import default_embedder
from pubapi_search.services.fetcher import Fetcher
from pubapi_search.services.ingestion_service import Indexer

logger = logging.getLogger(__name__)


def load_endpoints(path: str | Path) -> list[Endpoint]:
    """A JSON array of URLs or endpoint objects."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON array of endpoints")
    return [Endpoint.coerce(item) for item in raw]


async def run_index(args: argparse.Namespace) -> int:
    endpoints = load_endpoints(args.endpoints_path)
    completion = default_completion() if args.summarize else None
    indexer = Indexer(
        default_embedder(),
        completion=completion,
        max_concurrency=args.max_concurrency,
        summarize=args.summarize,
    )
    print(f"Indexing {len(endpoints)} endpoints from {args.endpoints_path}", file=sys.stderr)
    result = await indexer.index_endpoints(endpoints, Fetcher())
    for err in result.errors:
        print(f"  skipped {err.endpoint.url} ({err.stage}): {err.message}", file=sys.stderr)
    count = save_index(result.documents, args.output_path)
    print(f"Indexed {count} docs and saved to {args.output_path}")
    return 0


async def run_search(args: argparse.Namespace) -> int:
    runtime = load_runtime(args.index, max_concurrency=args.max_concurrency)
    use_verification = not args.disable_verification
    options = SearchOptions(
        max_num_results=args.n,
        max_concurrency=args.max_concurrency,
        use_verification=use_verification,
        verification_policy=VerificationPolicy.FAIL_CLOSED if args.fail_closed else VerificationPolicy.FAIL_OPEN,
    )
    results = await runtime.browser.search(args.query, options)
    if not results:
        print(f"No results found for query: '{args.query}'")
        return 0
    print(f"Found {len(results)} results for query: '{args.query}'")
    for i, result in enumerate(results, start=1):
        marker = " [unverified]" if result.verdict and result.verdict.fail_open else ""
        print(f"{i}. {result.title} (score={result.score:.4f}){marker}")
    return 0


async def run_solve(args: argparse.Namespace) -> int:
    runtime = load_runtime(args.index, max_concurrency=args.max_concurrency, max_steps=args.max_steps)
    if runtime.agent is None:
        print("error: the agent needs an LLM; set OPENAI_API_KEY or HF_API_KEY", file=sys.stderr)
        return 1
    answer = await runtime.agent.solve(args.query, runtime.browser)
    print(answer)
    return 0


def _phase(error: BaseException) -> str:
    if isinstance(error, AgentFailedError):
        return error.phase
    if isinstance(error, StepBudgetExceededError):
        return "step budget"
    if isinstance(error, IndexFailedError):
        return "index"
    if isinstance(error, DimensionMismatchError):
        return "configuration"
    if isinstance(error, EmbeddingError):
        return "embedding"
    if isinstance(error, CompletionError):
        return "completion"
    if isinstance(error, (OSError, ValueError)):
        return "input"
    return "error"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pubapi-search", description="Search and browse public API specs.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_index = sub.add_parser("index", help="Fetch endpoints and build an index file.")
    p_index.add_argument("--endpoints-path", required=True, help="JSON array of endpoint URLs or objects.")
    p_index.add_argument("--output-path", required=True, help="File to write indexed docs to.")
    p_index.add_argument("--max-concurrency", type=int, default=MAX_CONCURRENCY, help="Concurrent fetch/embed items.")
    p_index.add_argument("--summarize", action="store_true", help="Embed an LLM summary of each spec.")
    p_index.set_defaults(func=run_index)

    p_search = sub.add_parser("search", help="Rank indexed APIs against a query.")
    p_search.add_argument("--index", required=True, help="Path to the index JSON file.")
    p_search.add_argument("--query", required=True, help="Search query.")
    p_search.add_argument("-n", type=int, default=MAX_NUM_RESULTS, help="Number of search results to return.")
    p_search.add_argument("--max-concurrency", type=int, default=MAX_CONCURRENCY, help="Concurrent LLM judgments.")
    p_search.add_argument("--disable-verification", action="store_true", help="Skip LLM verification of results.")
    p_search.add_argument("--fail-closed", action="store_true", help="Drop results whose verification fails.")
    p_search.set_defaults(func=run_search)

    p_solve = sub.add_parser("solve", help="Run the browsing agent on a query.")
    p_solve.add_argument("--index", required=True, help="Path to the index JSON file.")
    p_solve.add_argument("--query", required=True, help="Task for the agent.")
    p_solve.add_argument("--max-concurrency", type=int, default=MAX_CONCURRENCY, help="Concurrent browser operations.")
    p_solve.add_argument("--max-steps", type=int, default=AGENT_MAX_STEPS, help="Hard cap on search/visit steps.")
    p_solve.set_defaults(func=run_solve)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    try:
        return asyncio.run(args.func(args))
    except (PubAPISearchError, OSError, ValueError) as e:
        logger.debug("fatal error", exc_info=True)
        print(f"error [{_phase(e)}]: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
LangGraph browsing agent: decide -> (search | visit) -> decide ... -> conclude.

The decide node is the only model-driven branch; search, visit and conclude
are mechanical. The loop is capped at max_steps search/visit steps, and each
decide/search/conclude call gets a small retry budget before the run fails.
"""

import logging
from typing import Awaitable, Callable, Literal, TypedDict, TypeVar

from langgraph.graph import END, StateGraph
from pydantic import BaseModel, Field

from pubapi_search.agent.actions import (
    DIRECTIVE_FORMAT,
    ConcludeDirective,
    SearchDirective,
    VisitDirective,
    parse_directive,
)
from pubapi_search.agent.llm import Completer
from pubapi_search.core.config import AGENT_MAX_RETRIES, AGENT_MAX_STEPS, AGENT_MAX_TOKENS, PAGE_PREVIEW_CHARS
from pubapi_search.core.errors import (
    AgentFailedError,
    CompletionError,
    EmbeddingError,
    FetchError,
    StepBudgetExceededError,
)
from pubapi_search.schemas.search import SearchOptions, SearchResult
from pubapi_search.services.browser import Browser
from pubapi_search.services.text_processing import truncate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observation(BaseModel):
    """What one search or visit step produced (or how it failed)."""

    step: int
    kind: Literal["search", "visit"]
    request: str
    results: list[SearchResult] = Field(default_factory=list)
    content: str | None = None
    error: str | None = None


class AgentState(TypedDict):
    query: str
    observations: list  # list[Observation], chronological
    step: int
    directive: SearchDirective | VisitDirective | ConcludeDirective | None
    answer: str
    done: bool


def render_observations(observations: list[Observation]) -> str:
    if not observations:
        return "(none yet)"
    lines: list[str] = []
    for obs in observations:
        if obs.kind == "search":
            lines.append(f"[{obs.step}] search {obs.request!r}")
            if obs.error:
                lines.append(f"    failed: {obs.error}")
            elif not obs.results:
                lines.append("    no results")
            for r in obs.results:
                lines.append(f"    - id={r.document_id} title={r.title!r} score={r.score:.4f}")
        else:
            lines.append(f"[{obs.step}] visit {obs.request}")
            if obs.error:
                lines.append(f"    failed: {obs.error}")
            else:
                lines.append(f"    page: {obs.content}")
    return "\n".join(lines)


def decide_prompt(query: str, observations: list[Observation], steps_left: int) -> str:
    return (
        "You are a browsing agent. You search an index of public API specifications and open "
        "specs to find the API (and the request) that satisfies the user's query.\n\n"
        f"{DIRECTIVE_FORMAT}\n\n"
        f"You have {steps_left} search/visit step(s) left. Conclude before you run out.\n\n"
        f"User query:\n{query}\n\n"
        f"Observations so far:\n{render_observations(observations)}\n"
    )


def conclude_prompt(query: str, observations: list[Observation], directive: str) -> str:
    return (
        "You will be given a user query and what a browsing agent observed while searching "
        "public API specs. Write the final answer for the user. If an API fits, name it and "
        "describe the request to make (method, path, body). Base the answer only on the observations.\n\n"
        f"User query:\n{query}\n\n"
        f"Observations:\n{render_observations(observations)}\n\n"
        f"Agent's conclusion notes:\n{directive or '(none)'}\n\n"
        "Answer:"
    )


class BrowsingAgent:
    """Solves one query per call; holds no state between calls."""

    def __init__(
        self,
        completion: Completer,
        max_steps: int = AGENT_MAX_STEPS,
        max_retries: int = AGENT_MAX_RETRIES,
        search_options: SearchOptions | None = None,
    ) -> None:
        if max_steps < 0 or max_retries < 0:
            raise ValueError("max_steps and max_retries must be >= 0")
        self.completion = completion
        self.max_steps = max_steps
        self.max_retries = max_retries
        self.search_options = search_options

    async def _retrying(
        self,
        phase: str,
        call: Callable[[], Awaitable[T]],
        retry_on: tuple[type[Exception], ...],
    ) -> T:
        """Up to 1 + max_retries attempts; the last failure is re-raised."""
        for attempt in range(1, self.max_retries + 2):
            try:
                return await call()
            except retry_on as e:
                logger.warning("[agent:%s] attempt %d/%d failed: %s", phase, attempt, self.max_retries + 1, e)
                if attempt > self.max_retries:
                    raise
        raise AssertionError("unreachable")

    async def _decide_once(self, prompt: str):
        reply = await self.completion.complete(prompt, max_tokens=AGENT_MAX_TOKENS)
        logger.info("[agent:decide] llm_raw=%r", reply[:300])
        return parse_directive(reply)

    async def _conclude_once(self, prompt: str) -> str:
        answer = (await self.completion.complete(prompt, max_tokens=AGENT_MAX_TOKENS)).strip()
        if not answer:
            raise CompletionError("empty final answer")
        return answer

    def build_graph(self, browser: Browser):
        """Compile the loop for one browser. Nodes close over self and browser."""

        async def decide(state: AgentState) -> dict:
            step = state["step"]
            if step >= self.max_steps:
                logger.info("[agent:decide] step budget exhausted at step=%d", step)
                raise StepBudgetExceededError(self.max_steps)
            prompt = decide_prompt(state["query"], state["observations"], self.max_steps - step)
            try:
                directive = await self._retrying("decide", lambda: self._decide_once(prompt), (CompletionError,))
            except CompletionError as e:
                raise AgentFailedError("decide", e) from e
            logger.info("[agent:decide] OUT step=%d directive=%s", step, directive.action)
            return {"directive": directive}

        async def search(state: AgentState) -> dict:
            step = state["step"] + 1
            sub_query = state["directive"].query
            try:
                results = await self._retrying(
                    "search",
                    lambda: browser.search(sub_query, self.search_options),
                    (EmbeddingError, CompletionError),
                )
                obs = Observation(step=step, kind="search", request=sub_query, results=results)
            except (EmbeddingError, CompletionError) as e:
                obs = Observation(step=step, kind="search", request=sub_query, error=e.message)
            logger.info("[agent:search] OUT step=%d results=%d error=%s", step, len(obs.results), obs.error)
            return {"observations": [*state["observations"], obs], "step": step}

        async def visit(state: AgentState) -> dict:
            step = state["step"] + 1
            document_id = state["directive"].document_id
            try:
                content = await browser.open(document_id)
                obs = Observation(
                    step=step, kind="visit", request=document_id,
                    content=truncate(content, PAGE_PREVIEW_CHARS),
                )
            except FetchError as e:
                obs = Observation(step=step, kind="visit", request=document_id, error=e.message)
            except KeyError:
                obs = Observation(step=step, kind="visit", request=document_id, error="unknown document id")
            logger.info("[agent:visit] OUT step=%d id=%s error=%s", step, document_id, obs.error)
            return {"observations": [*state["observations"], obs], "step": step}

        async def conclude(state: AgentState) -> dict:
            directive = state["directive"]
            prompt = conclude_prompt(state["query"], state["observations"], directive.answer)
            try:
                answer = await self._retrying("conclude", lambda: self._conclude_once(prompt), (CompletionError,))
            except CompletionError as e:
                raise AgentFailedError("conclude", e) from e
            logger.info("[agent:conclude] OUT answer_len=%d", len(answer))
            return {"answer": answer, "done": True}

        def route(state: AgentState) -> Literal["search", "visit", "conclude"]:
            return state["directive"].action

        graph = StateGraph(AgentState)
        graph.add_node("decide", decide)
        graph.add_node("search", search)
        graph.add_node("visit", visit)
        graph.add_node("conclude", conclude)

        graph.set_entry_point("decide")
        graph.add_conditional_edges("decide", route)
        graph.add_edge("search", "decide")
        graph.add_edge("visit", "decide")
        graph.add_edge("conclude", END)
        return graph.compile()

    async def run(self, query: str, browser: Browser) -> AgentState:
        """
        Run the loop to completion and return the final state.

        Raises:
            StepBudgetExceededError: if max_steps steps pass without a conclude directive.
            AgentFailedError: if decide or conclude keeps failing past the retry budget.
            ConcurrencyCancelledError: if cancelled while waiting on the browser.
        """
        if not query or not query.strip():
            raise ValueError("query is required")
        initial: AgentState = {
            "query": query.strip(),
            "observations": [],
            "step": 0,
            "directive": None,
            "answer": "",
            "done": False,
        }
        logger.info("[agent:run] START query=%r max_steps=%d", initial["query"], self.max_steps)
        graph = self.build_graph(browser)
        # two supersteps per search/visit step, plus the final decide and conclude
        final = await graph.ainvoke(initial, config={"recursion_limit": 2 * self.max_steps + 4})
        logger.info("[agent:run] END steps=%d answer_len=%d", final["step"], len(final["answer"]))
        return final

    async def solve(self, query: str, browser: Browser) -> str:
        """Return the final answer for query."""
        final = await self.run(query, browser)
        return final["answer"]

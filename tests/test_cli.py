"""
CLI tests: output format and non-zero exit on fatal errors.
"""

import json
from unittest.mock import patch

from conftest import FakeCompletion, FakeEmbedder
from pubapi_search.agent.graph import BrowsingAgent
from pubapi_search.cli import load_endpoints, main
from pubapi_search.core.errors import CompletionError, FetchError
from pubapi_search.schemas.documents import WebPage
from pubapi_search.services.agent_service import Runtime, build_runtime
from pubapi_search.services.browser import Browser
from pubapi_search.services.document_store import DocumentStore, load_index
from pubapi_search.services.retrieval_service import SearchEngine


def _runtime(store: DocumentStore, completion=None, agent=None) -> Runtime:
    browser = Browser(SearchEngine(store, FakeEmbedder(default=[1.0, 0.0]), completion))
    return Runtime(browser=browser, agent=agent)


def test_search_prints_ranked_titles(abc_store, capsys) -> None:
    with patch("pubapi_search.cli.load_runtime", return_value=_runtime(abc_store)):
        code = main(["search", "--index", "idx.json", "--query", "anything", "-n", "2", "--disable-verification"])
    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out[0] == "Found 2 results for query: 'anything'"
    assert out[1].startswith("1. A (score=1.0000)")
    assert out[2].startswith("2. C (score=0.70")


def test_search_marks_unverified_results(abc_store, capsys) -> None:
    def responder(prompt: str) -> str:
        if "\nC\n" in prompt:
            raise CompletionError("timeout")
        return "YES"

    runtime = _runtime(abc_store, completion=FakeCompletion(responder=responder))
    with patch("pubapi_search.cli.load_runtime", return_value=runtime):
        code = main(["search", "--index", "idx.json", "--query", "q", "-n", "2"])
    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out[2].endswith("[unverified]")
    assert not out[1].endswith("[unverified]")


def test_search_no_results(capsys) -> None:
    with patch("pubapi_search.cli.load_runtime", return_value=_runtime(DocumentStore())):
        code = main(["search", "--index", "idx.json", "--query", "q", "--disable-verification"])
    assert code == 0
    assert capsys.readouterr().out.strip() == "No results found for query: 'q'"


def test_verification_without_llm_exits_non_zero(abc_store, capsys) -> None:
    with patch("pubapi_search.cli.load_runtime", return_value=_runtime(abc_store)):
        code = main(["search", "--index", "idx.json", "--query", "q"])
    captured = capsys.readouterr()
    assert code == 1
    assert captured.out == ""
    assert "error [input]" in captured.err


def test_missing_index_file_exits_non_zero(tmp_path, capsys) -> None:
    code = main(["search", "--index", str(tmp_path / "nope.json"), "--query", "q"])
    assert code == 1
    assert "error [input]" in capsys.readouterr().err


def test_solve_prints_answer(abc_store, capsys) -> None:
    completion = FakeCompletion([json.dumps({"action": "conclude"}), "Call POST /rides."])
    runtime = _runtime(abc_store, agent=BrowsingAgent(completion, max_steps=2))
    with patch("pubapi_search.cli.load_runtime", return_value=runtime):
        code = main(["solve", "--index", "idx.json", "--query", "book a ride"])
    assert code == 0
    assert capsys.readouterr().out.strip() == "Call POST /rides."


def test_solve_step_budget_names_phase(abc_store, capsys) -> None:
    completion = FakeCompletion(responder=lambda p: json.dumps({"action": "search", "query": "x"}))
    runtime = build_runtime(abc_store, embedder=FakeEmbedder(), completion=completion, max_steps=1)
    with patch("pubapi_search.cli.load_runtime", return_value=runtime):
        code = main(["solve", "--index", "idx.json", "--query", "q"])
    assert code == 1
    assert "error [step budget]" in capsys.readouterr().err


def test_solve_without_llm(abc_store, capsys) -> None:
    with patch("pubapi_search.cli.load_runtime", return_value=_runtime(abc_store)):
        code = main(["solve", "--index", "idx.json", "--query", "q"])
    assert code == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().err


def test_load_endpoints_accepts_mixed_shapes(tmp_path) -> None:
    path = tmp_path / "endpoints.json"
    path.write_text(json.dumps([
        "http://localhost:8001/",
        {"Protocol": "http", "IpAddress": "127.0.0.1", "Port": 8002, "Path": "/spec"},
    ]))
    assert [e.url for e in load_endpoints(path)] == ["http://localhost:8001/", "http://127.0.0.1:8002/spec"]


def test_index_writes_documents(tmp_path, capsys) -> None:
    endpoints = tmp_path / "endpoints.json"
    endpoints.write_text(json.dumps(["http://uber.local/", "http://down.local/"]))
    output = tmp_path / "index.json"

    class StubFetcher:
        async def fetch(self, endpoint):
            if "down" in endpoint.url:
                raise FetchError(endpoint.url, "connection refused")
            return WebPage(endpoint=endpoint, title="Uber API", content={"info": {"title": "Uber API"}, "paths": {}})

    with patch("pubapi_search.cli.default_embedder", return_value=FakeEmbedder()), \
            patch("pubapi_search.cli.Fetcher", StubFetcher):
        code = main(["index", "--endpoints-path", str(endpoints), "--output-path", str(output)])

    captured = capsys.readouterr()
    assert code == 0
    assert f"Indexed 1 docs and saved to {output}" in captured.out
    assert "skipped http://down.local/ (fetch)" in captured.err
    assert load_index(output).titles() == ["Uber API"]

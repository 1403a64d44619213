"""
HTTP tests for the FastAPI surface, with fake embedding and LLM capabilities.
"""

import json

import pytest
from fastapi.testclient import TestClient

from conftest import FakeCompletion, FakeEmbedder
from pubapi_search.agent.graph import BrowsingAgent
from pubapi_search.main import create_app
from pubapi_search.services.browser import Browser
from pubapi_search.services.document_store import DocumentStore
from pubapi_search.services.retrieval_service import SearchEngine


@pytest.fixture
def no_index(monkeypatch):
    monkeypatch.setattr("pubapi_search.main.INDEX_PATH", "")


def test_health(no_index) -> None:
    with TestClient(create_app()) as client:
        assert client.get("/health").json() == {"ok": True}
        assert client.get("/").status_code == 200


def test_search_without_index_is_503(no_index) -> None:
    with TestClient(create_app()) as client:
        response = client.post("/search", json={"query": "send sms"})
    assert response.status_code == 503


def test_sources_without_index(no_index) -> None:
    with TestClient(create_app()) as client:
        assert client.get("/sources").json() == {"total_documents": 0, "dimension": None, "titles": []}


def test_sources_lists_titles(browser: Browser) -> None:
    with TestClient(create_app(browser=browser)) as client:
        body = client.get("/sources").json()
    assert body == {"total_documents": 3, "dimension": 2, "titles": ["A", "B", "C"]}


def test_search_returns_ranked_results(browser: Browser) -> None:
    with TestClient(create_app(browser=browser)) as client:
        response = client.post("/search", json={"query": "anything", "max_num_results": 3})
    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["title"] for r in results] == ["A", "C", "B"]
    assert results[0]["score"] == pytest.approx(1.0)


def test_blank_query_is_400(browser: Browser) -> None:
    with TestClient(create_app(browser=browser)) as client:
        response = client.post("/search", json={"query": "   "})
    assert response.status_code == 400


def test_verification_without_llm_is_400(browser: Browser) -> None:
    with TestClient(create_app(browser=browser)) as client:
        response = client.post("/search", json={"query": "sms", "use_verification": True})
    assert response.status_code == 400


def test_dimension_mismatch_is_500(abc_store: DocumentStore) -> None:
    browser = Browser(SearchEngine(abc_store, FakeEmbedder(default=[1.0, 0.0, 0.0])))
    with TestClient(create_app(browser=browser)) as client:
        response = client.post("/search", json={"query": "sms", "use_verification": False})
    assert response.status_code == 500


def test_embedding_failure_is_502(abc_store: DocumentStore) -> None:
    browser = Browser(SearchEngine(abc_store, FakeEmbedder(fail_on=("sms",))))
    with TestClient(create_app(browser=browser)) as client:
        response = client.post("/search", json={"query": "sms", "use_verification": False})
    assert response.status_code == 502


def test_solve_without_agent_is_503(browser: Browser) -> None:
    with TestClient(create_app(browser=browser)) as client:
        response = client.post("/solve", json={"query": "book a ride"})
    assert response.status_code == 503


def test_solve_returns_answer(browser: Browser) -> None:
    completion = FakeCompletion([
        json.dumps({"action": "search", "query": "rides"}),
        json.dumps({"action": "conclude"}),
        "Use API A.",
    ])
    agent = BrowsingAgent(completion, max_steps=3)
    with TestClient(create_app(browser=browser, agent=agent)) as client:
        response = client.post("/solve", json={"query": "book a ride"})
    assert response.status_code == 200
    assert response.json() == {"answer": "Use API A.", "steps": 1}


def test_solve_step_budget_is_504(browser: Browser) -> None:
    completion = FakeCompletion(responder=lambda p: json.dumps({"action": "search", "query": "more"}))
    agent = BrowsingAgent(completion, max_steps=2)
    with TestClient(create_app(browser=browser, agent=agent)) as client:
        response = client.post("/solve", json={"query": "book a ride"})
    assert response.status_code == 504

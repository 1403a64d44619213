"""
Tests for the document store and the persisted index format.
"""

import json

import pytest

from conftest import make_doc
from pubapi_search.core.errors import DimensionMismatchError
from pubapi_search.schemas.documents import Endpoint, document_id_for
from pubapi_search.services.document_store import DocumentStore, load_index, save_index


class TestDocumentStore:
    def test_keeps_insertion_order(self, abc_store: DocumentStore) -> None:
        assert abc_store.titles() == ["A", "B", "C"]
        assert len(abc_store) == 3
        assert abc_store.dimension == 2
        assert abc_store.matrix.shape == (3, 2)

    def test_same_endpoint_overwrites_in_place(self) -> None:
        url = "http://weather.local:8000/"
        store = DocumentStore([
            make_doc("Weather v1", [1.0, 0.0], url=url),
            make_doc("Maps", [0.0, 1.0]),
            make_doc("Weather v2", [0.5, 0.5], url=url),
        ])
        assert store.titles() == ["Weather v2", "Maps"]
        assert store.get(document_id_for(Endpoint.parse(url))).title == "Weather v2"

    def test_mixed_dimensions_rejected(self) -> None:
        with pytest.raises(DimensionMismatchError):
            DocumentStore([make_doc("a", [1.0, 0.0]), make_doc("b", [1.0, 0.0, 0.0])])

    def test_empty_store(self) -> None:
        store = DocumentStore()
        assert len(store) == 0
        assert store.dimension is None
        assert store.stats() == {"total_documents": 0, "dimension": None, "titles": []}

    def test_contains_and_get(self, abc_store: DocumentStore) -> None:
        doc = abc_store.documents[0]
        assert doc.id in abc_store
        assert abc_store.get("missing") is None


class TestPersistedIndex:
    def test_save_then_load(self, tmp_path, abc_store: DocumentStore) -> None:
        path = tmp_path / "index.json"
        assert save_index(abc_store, path) == 3
        records = json.loads(path.read_text())
        assert isinstance(records, list) and records[0]["title"] == "A"

        loaded = load_index(path)
        assert loaded.titles() == ["A", "B", "C"]
        assert [d.id for d in loaded] == [d.id for d in abc_store]
        assert loaded.documents[2].embedding == [0.7, 0.7]

    def test_loads_records_without_ids(self, tmp_path) -> None:
        path = tmp_path / "legacy.json"
        path.write_text(json.dumps([
            {
                "title": "Uber API",
                "summary": "Ride hailing",
                "embedding": [0.1, 0.2],
                "spec": {"info": {"title": "Uber API"}},
                "endpoint": {"Protocol": "http", "IpAddress": "127.0.0.1", "Port": 8001, "Path": "/"},
            }
        ]))
        store = load_index(path)
        doc = store.documents[0]
        assert doc.endpoint.url == "http://127.0.0.1:8001/"
        assert doc.id == document_id_for(doc.endpoint)
        assert doc.content == {"info": {"title": "Uber API"}}

    def test_non_array_rejected(self, tmp_path) -> None:
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"documents": []}))
        with pytest.raises(ValueError):
            load_index(path)


class TestEndpoint:
    def test_equal_by_canonical_url(self) -> None:
        a = Endpoint.parse("HTTP://Example.com:80/spec?b=2&a=1")
        b = Endpoint(scheme="http", host="example.com", port=80, path="/spec", query={"a": "1", "b": "2"})
        assert a == b
        assert hash(a) == hash(b)
        assert a.url == "http://example.com:80/spec?a=1&b=2"

    def test_stable_document_id(self) -> None:
        e = Endpoint.parse("http://localhost:8001/")
        assert document_id_for(e) == document_id_for(Endpoint.parse("http://localhost:8001/"))
        assert document_id_for(e) != document_id_for(Endpoint.parse("http://localhost:8002/"))

    def test_relative_url_rejected(self) -> None:
        with pytest.raises(ValueError):
            Endpoint.parse("/just/a/path")

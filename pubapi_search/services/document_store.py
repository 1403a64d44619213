"""
Document store: in-memory, ordered, read-only collection of indexed documents.

Responsibility: Hold the documents a search engine ranks against, enforce
unique IDs and a uniform embedding dimension, and load/save the persisted
index (a flat JSON array of document records).
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator

import numpy as np

from pubapi_search.core.errors import DimensionMismatchError
from pubapi_search.schemas.documents import Document, Endpoint, document_id_for

logger = logging.getLogger(__name__)


class DocumentStore:
    """
    Built once, never mutated. Re-indexing means building a new store.

    Documents sharing an ID (same source endpoint) collapse to one entry: the
    first position is kept and the last value wins.
    """

    def __init__(self, documents: Iterable[Document] = ()) -> None:
        by_id: dict[str, Document] = {}
        for doc in documents:
            if doc.id in by_id:
                logger.info("[document_store] duplicate id=%s url=%s, overwriting", doc.id, doc.endpoint.url)
            by_id[doc.id] = doc
        self._documents: tuple[Document, ...] = tuple(by_id.values())
        self._by_id = by_id
        self._dimension = self._check_dimension(self._documents)
        self._matrix: np.ndarray | None = None

    @staticmethod
    def _check_dimension(documents: tuple[Document, ...]) -> int | None:
        if not documents:
            return None
        expected = documents[0].dimension
        for doc in documents[1:]:
            if doc.dimension != expected:
                raise DimensionMismatchError(expected, doc.dimension, context=f"document {doc.id}")
        return expected

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._by_id

    @property
    def documents(self) -> tuple[Document, ...]:
        return self._documents

    @property
    def dimension(self) -> int | None:
        """Shared embedding dimension, or None for an empty store."""
        return self._dimension

    @property
    def matrix(self) -> np.ndarray:
        """Embeddings as an (M, D) float array in insertion order. Computed once."""
        if self._matrix is None:
            if not self._documents:
                self._matrix = np.zeros((0, 0), dtype=float)
            else:
                self._matrix = np.asarray([d.embedding for d in self._documents], dtype=float)
        return self._matrix

    def get(self, document_id: str) -> Document | None:
        return self._by_id.get(document_id)

    def titles(self) -> list[str]:
        """Document titles in insertion order."""
        return [d.title for d in self._documents]

    def stats(self) -> dict:
        return {
            "total_documents": len(self._documents),
            "dimension": self._dimension,
            "titles": self.titles(),
        }


def _record_to_document(record: dict[str, Any]) -> Document:
    """Accept current records and older ones (no id, raw spec under "spec", url string)."""
    data = dict(record)
    if "spec" in data and "content" not in data:
        data["content"] = data.pop("spec")
    endpoint = Endpoint.coerce(data.get("endpoint") or data.get("url"))
    data["endpoint"] = endpoint
    data.pop("url", None)
    if not data.get("id"):
        data["id"] = document_id_for(endpoint)
    return Document.model_validate(data)


def load_index(path: str | Path) -> DocumentStore:
    """
    Load a persisted index file into a new store.

    Raises:
        OSError: if the file cannot be read.
        ValueError: if the file is not a JSON array of document records.
        DimensionMismatchError: if documents disagree on embedding dimension.
    """
    path = Path(path)
    logger.info("[document_store:load_index] IN  path=%s", path)
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON array of documents, got {type(raw).__name__}")
    store = DocumentStore(_record_to_document(r) for r in raw)
    logger.info("[document_store:load_index] OUT documents=%d dimension=%s", len(store), store.dimension)
    return store


def save_index(documents: Iterable[Document], path: str | Path) -> int:
    """Write documents as a flat JSON array. Returns the number written."""
    path = Path(path)
    records = [d.model_dump(mode="json") for d in documents]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(records), encoding="utf-8")
    logger.info("[document_store:save_index] wrote %d documents to %s", len(records), path)
    return len(records)

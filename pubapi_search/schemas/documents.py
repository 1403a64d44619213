"""Schemas for indexed documents and the endpoints they were fetched from."""

import uuid
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit

from pydantic import BaseModel, ConfigDict, Field


class Endpoint(BaseModel):
    """A fetchable resource. Compared and hashed by its canonical URL."""

    model_config = ConfigDict(frozen=True)

    scheme: str = Field("http", description="URL scheme, e.g. http or https.")
    host: str = Field(..., min_length=1, description="Host name or IP address.")
    port: int | None = Field(None, description="Port; omitted from the URL when None.")
    path: str = Field("/", description="Absolute path of the resource.")
    query: dict[str, str] = Field(default_factory=dict, description="Query parameters.")

    @property
    def url(self) -> str:
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        url = f"{self.scheme.lower()}://{netloc.lower()}{path}"
        if self.query:
            url += "?" + urlencode(sorted(self.query.items()))
        return url

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Endpoint):
            return NotImplemented
        return self.url == other.url

    def __hash__(self) -> int:
        return hash(self.url)

    def __str__(self) -> str:
        return self.url

    @classmethod
    def parse(cls, url: str) -> "Endpoint":
        """Build an Endpoint from a URL string such as http://localhost:8001/spec."""
        parts = urlsplit(url.strip())
        if not parts.scheme or not parts.hostname:
            raise ValueError(f"not an absolute URL: {url!r}")
        return cls(
            scheme=parts.scheme,
            host=parts.hostname,
            port=parts.port,
            path=parts.path or "/",
            query=dict(parse_qsl(parts.query)),
        )

    @classmethod
    def coerce(cls, value: Any) -> "Endpoint":
        """
        Accept an Endpoint, a URL string, a dict of Endpoint fields, or the
        {Protocol, IpAddress, Port, Path} records written by older endpoint lists.
        """
        if isinstance(value, Endpoint):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, dict):
            if "IpAddress" in value:
                return cls(
                    scheme=value.get("Protocol") or "http",
                    host=value["IpAddress"],
                    port=value.get("Port") or None,
                    path=value.get("Path") or "/",
                )
            if "url" in value and "host" not in value:
                return cls.parse(value["url"])
            return cls.model_validate(value)
        raise TypeError(f"cannot build an Endpoint from {type(value).__name__}")


def document_id_for(endpoint: Endpoint) -> str:
    """Stable document ID: the same endpoint always yields the same ID."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, endpoint.url))


class WebPage(BaseModel):
    """A fetched page waiting to be indexed: raw payload plus a derived title."""

    endpoint: Endpoint
    title: str = ""
    content: Any = None


class Document(BaseModel):
    """An embedded, searchable page. Immutable once produced by the indexer."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable ID derived from the source endpoint.")
    title: str = Field("", description="Display title, usually the spec's info.title.")
    summary: str = Field("", description="Text the embedding was computed from.")
    content: Any = Field(None, description="Raw page payload (decoded spec JSON or text).")
    embedding: list[float] = Field(..., description="Embedding vector of the summary.")
    endpoint: Endpoint

    @property
    def dimension(self) -> int:
        return len(self.embedding)

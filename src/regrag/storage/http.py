"""
Remote collaborators over HTTP.

Minimal async clients for a REST document store, an embedding service and a
text-generation service. Every transport or status failure is re-raised as
the matching ExternalServiceError subclass; no call is retried.

Expected store endpoints::

    POST /search/vector          {embedding, match_count, match_threshold, min_content_length}
    POST /search/full-text       {query, limit}
    PUT  /documents/{doc_id}     GET /documents/{doc_id} (404 when absent)
    PUT  /chunks/{chunk_id}      GET /chunks/{chunk_id}
    GET  /chunks/{chunk_id}/related?min_weight=&limit=
    GET  /chunks/{chunk_id}/keywords
    POST /chunks/by-keywords     {keywords, limit}
    PUT  /keywords/{keyword}     PUT /concepts/{concept}
    POST /relationships          POST /relationships/query {chunk_ids, min_weight}
    GET  /stats
"""

from dataclasses import asdict
from typing import Any
from urllib.parse import quote

import httpx

from ..errors import EmbeddingError, ExternalServiceError, GenerationError, StoreError
from ..models import Chunk, ChunkType, DocumentInfo, KnowledgeGraphRelationship, SearchResult
from ..observability.logging import get_logger
from .base import DocumentStore, EmbeddingOracle, TextGenerator

logger = get_logger(__name__)


class _JsonClient:
    """Shared httpx client with API-key header and error translation."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        timeout: float,
        error_type: type[ExternalServiceError],
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.error_type = error_type
        headers = {"X-API-Key": api_key} if api_key else None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=headers,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
        )

    async def request(
        self, method: str, path: str, *, allow_404: bool = False, **kwargs: Any
    ) -> dict[str, Any] | None:
        url = f"{self.base_url}{path}"
        try:
            resp = await self._client.request(method, url, **kwargs)
            if allow_404 and resp.status_code == 404:
                return None
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise self.error_type(f"{method} {path} failed: {e}") from e

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise self.error_type(f"{method} {path} returned invalid JSON") from e

    async def close(self) -> None:
        await self._client.aclose()


def _chunk_from_json(data: dict[str, Any]) -> Chunk:
    return Chunk(
        id=data["id"],
        content=data.get("content", ""),
        chunk_type=ChunkType(data.get("chunk_type", "body")),
        keywords=list(data.get("keywords", [])),
        related_chunks=list(data.get("related_chunks", [])),
        relationship_weights=dict(data.get("relationship_weights", {})),
        context_extension=data.get("context_extension"),
        metadata=dict(data.get("metadata", {})),
    )


class HttpDocumentStore(DocumentStore):
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._http = _JsonClient(base_url, api_key, timeout, StoreError, client)

    async def vector_search(
        self,
        embedding: list[float],
        match_count: int,
        match_threshold: float = 0.3,
        min_content_length: int = 0,
    ) -> list[SearchResult]:
        data = await self._http.request(
            "POST",
            "/search/vector",
            json={
                "embedding": embedding,
                "match_count": match_count,
                "match_threshold": match_threshold,
                "min_content_length": min_content_length,
            },
        )
        return [
            SearchResult.from_dict({"source": "vector", **row}) for row in data.get("results", [])
        ]

    async def full_text_search(self, query: str, limit: int) -> list[SearchResult]:
        data = await self._http.request("POST", "/search/full-text", json={"query": query, "limit": limit})
        return [
            SearchResult.from_dict({"source": "keyword", "similarity": 0.0, **row})
            for row in data.get("results", [])
        ]

    async def upsert_document(
        self,
        document: DocumentInfo,
        embedding: list[float] | None = None,
        keywords: list[str] | None = None,
        topics: list[str] | None = None,
        summary: str = "",
    ) -> None:
        payload = asdict(document)
        payload.update(
            {"embedding": embedding, "keywords": keywords or [], "topics": topics or [], "summary": summary}
        )
        await self._http.request("PUT", f"/documents/{quote(document.doc_id, safe='')}", json=payload)

    async def upsert_chunk(self, doc_id: str, chunk: Chunk, embedding: list[float] | None) -> None:
        payload = {"doc_id": doc_id, "embedding": embedding, **chunk.to_dict()}
        await self._http.request("PUT", f"/chunks/{quote(chunk.id, safe='')}", json=payload)

    async def upsert_keyword(
        self, keyword: str, weight: float, frequency: int, concept: str | None = None
    ) -> None:
        await self._http.request(
            "PUT",
            f"/keywords/{quote(keyword, safe='')}",
            json={"weight": weight, "frequency": frequency, "concept": concept},
        )

    async def upsert_relationship(self, relationship: KnowledgeGraphRelationship) -> None:
        await self._http.request("POST", "/relationships", json=asdict(relationship))

    async def upsert_concept(self, concept: str, keywords: list[str]) -> None:
        await self._http.request("PUT", f"/concepts/{quote(concept, safe='')}", json={"keywords": keywords})

    async def get_related_chunks(
        self, chunk_id: str, min_weight: float = 0.3, limit: int = 3
    ) -> list[dict[str, Any]]:
        data = await self._http.request(
            "GET",
            f"/chunks/{quote(chunk_id, safe='')}/related",
            params={"min_weight": min_weight, "limit": limit},
        )
        return list(data.get("related", []))

    async def get_keywords_for_chunk(self, chunk_id: str) -> list[str]:
        data = await self._http.request("GET", f"/chunks/{quote(chunk_id, safe='')}/keywords")
        return list(data.get("keywords", []))

    async def find_chunks_by_keywords(self, keywords: list[str], limit: int) -> list[Chunk]:
        data = await self._http.request(
            "POST", "/chunks/by-keywords", json={"keywords": keywords, "limit": limit}
        )
        return [_chunk_from_json(row) for row in data.get("chunks", [])]

    async def get_relationships(
        self, chunk_ids: list[str], min_weight: float = 0.0
    ) -> list[KnowledgeGraphRelationship]:
        data = await self._http.request(
            "POST", "/relationships/query", json={"chunk_ids": chunk_ids, "min_weight": min_weight}
        )
        return [KnowledgeGraphRelationship(**row) for row in data.get("relationships", [])]

    async def document_exists(self, doc_id: str) -> bool:
        data = await self._http.request("GET", f"/documents/{quote(doc_id, safe='')}", allow_404=True)
        return data is not None

    async def get_chunk(self, chunk_id: str) -> Chunk | None:
        data = await self._http.request("GET", f"/chunks/{quote(chunk_id, safe='')}", allow_404=True)
        return _chunk_from_json(data) if data else None

    async def get_stats(self) -> dict[str, Any]:
        data = await self._http.request("GET", "/stats")
        return {"backend": "http", **data}

    async def close(self) -> None:
        await self._http.close()


class HttpEmbeddingClient(EmbeddingOracle):
    """``POST /embed {input, model} -> {embedding: [...]}``"""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.model = model
        self._http = _JsonClient(base_url, api_key, timeout, EmbeddingError, client)

    async def embed(self, text: str) -> list[float]:
        data = await self._http.request("POST", "/embed", json={"input": text, "model": self.model})
        embedding = data.get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingError("embedding service returned no vector")
        return [float(x) for x in embedding]

    async def close(self) -> None:
        await self._http.close()


class HttpTextGenerator(TextGenerator):
    """``POST /generate {prompt, model} -> {text}``"""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.model = model
        self._http = _JsonClient(base_url, api_key, timeout, GenerationError, client)

    async def generate(self, prompt: str) -> str:
        data = await self._http.request("POST", "/generate", json={"prompt": prompt, "model": self.model})
        text = data.get("text")
        if not isinstance(text, str):
            raise GenerationError("generation service returned no text")
        return text

    async def close(self) -> None:
        await self._http.close()

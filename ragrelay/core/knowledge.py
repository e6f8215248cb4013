"""
Knowledge service: embeds documents into the vector store and retrieves
the most relevant ones for a query.

Ingest is strict (errors surface, batches are not atomic); search is
best-effort (errors become an empty result) so a knowledge base outage
degrades chat quality but never chat availability.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from util.logging import logger as structured_logger

from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorStore
from ..vector.types import KnowledgeDocument, ScoredResult, VectorRecord


DocumentInput = Union[KnowledgeDocument, Mapping[str, Any]]


@dataclass
class SearchOutcome:
    """Search results plus the error that was swallowed, if any."""
    results: List[ScoredResult] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


def _as_document(doc: DocumentInput) -> KnowledgeDocument:
    if isinstance(doc, KnowledgeDocument):
        return doc
    return KnowledgeDocument(
        text=doc["text"],
        id=doc.get("id"),
        metadata=dict(doc.get("metadata") or {}),
    )


def new_document_id() -> str:
    """Collision-resistant id for documents submitted without one."""
    return str(uuid.uuid4())


class KnowledgeService:
    """
    Orchestrates an embedding provider and a vector store over one
    collection.

    Usage:
        service = KnowledgeService(embedder, store, collection="knowledge_base", dimension=1536)
        await service.ensure_collection()
        await service.ingest([{"text": "Qdrant is a vector database"}])
        results = await service.search("what is Qdrant", limit=1)
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStore,
        collection: str = "knowledge_base",
        dimension: Optional[int] = None,
        distance: str = "cosine",
        telemetry=None,
    ):
        self.embedding_provider = embedding_provider
        self.vector_store = vector_store
        self.collection = collection
        self.dimension = dimension if dimension is not None else embedding_provider.get_dimension()
        self.distance = distance
        self.telemetry = telemetry

    async def ensure_collection(self) -> bool:
        """Create the collection if it does not exist yet. Idempotent."""
        created = await self.vector_store.ensure_collection(self.collection, self.dimension, self.distance)
        structured_logger.log_collection(
            self.collection,
            "created" if created else "exists",
            {"dimension": self.dimension, "distance": self.distance},
        )
        return created

    async def _ingest_one(self, doc: KnowledgeDocument) -> str:
        vector = await self.embedding_provider.embed_text(doc.text)
        document_id = doc.id or new_document_id()
        payload: Dict[str, Any] = {"text": doc.text, **doc.metadata, "document_id": document_id}
        await self.vector_store.upsert(self.collection, [VectorRecord(id=document_id, vector=vector, payload=payload)])
        return document_id

    async def ingest(self, documents: Sequence[DocumentInput]) -> int:
        """
        Embed and store every document concurrently.

        The first failure is re-raised once all tasks have settled.
        Documents already stored by then stay stored: callers must treat
        a batch as non-atomic.

        Returns:
            Number of documents ingested.
        """
        if not documents:
            raise ValueError("documents must not be empty")

        docs = [_as_document(d) for d in documents]
        errors: List[BaseException] = []  # in order of failure
        start = time.monotonic()

        async def run(doc: KnowledgeDocument) -> None:
            try:
                await self._ingest_one(doc)
            except Exception as e:
                errors.append(e)

        await asyncio.gather(*(run(doc) for doc in docs))
        duration_ms = (time.monotonic() - start) * 1000

        if errors:
            first = errors[0]
            structured_logger.log_ingest(
                self.collection, len(docs) - len(errors), duration_ms, status="failed", error=str(first)
            )
            raise first

        structured_logger.log_ingest(self.collection, len(docs), duration_ms)
        if self.telemetry is not None:
            self.telemetry.emit_event(
                "KnowledgeIngested",
                {"count": len(docs), "collection": self.collection, "duration": round(duration_ms)},
            )
        return len(docs)

    async def search_detailed(self, query: str, limit: int = 3) -> SearchOutcome:
        """Best-effort search that also reports what went wrong, if anything."""
        try:
            query_vector = await self.embedding_provider.embed_text(query)
            hits = await self.vector_store.search(self.collection, query_vector, limit)
        except Exception as e:
            structured_logger.log_search(self.collection, limit, 0, status="failed", error=str(e))
            if self.telemetry is not None:
                self.telemetry.emit_exception(e, {"operation": "KnowledgeSearchFailed", "collection": self.collection})
            return SearchOutcome(error=e)

        results = [
            ScoredResult(text=str(hit.payload.get("text") or ""), score=float(hit.score), metadata=dict(hit.payload))
            for hit in hits
        ]
        structured_logger.log_search(self.collection, limit, len(results))
        return SearchOutcome(results=results)

    async def search(self, query: str, limit: int = 3) -> List[ScoredResult]:
        """Top ``limit`` results for ``query``; empty on any failure."""
        outcome = await self.search_detailed(query, limit)
        return outcome.results

    async def health_check(self) -> bool:
        return await self.vector_store.health_check()

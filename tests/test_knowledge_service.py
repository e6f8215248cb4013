"""
Tests for the knowledge service: ingest, search and degradation.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from ragrelay.core.errors import StoreError, UpstreamError
from ragrelay.core.knowledge import KnowledgeService
from ragrelay.vector import DeterministicHashEmbedding, KnowledgeDocument, SimpleInMemoryVectorStore


DIM = 64


@pytest.fixture
def telemetry():
    return MagicMock()


@pytest.fixture
def service(telemetry):
    svc = KnowledgeService(
        DeterministicHashEmbedding(dimension=DIM),
        SimpleInMemoryVectorStore(),
        collection="knowledge_base",
        telemetry=telemetry,
    )
    asyncio.run(svc.ensure_collection())
    return svc


class FailingEmbedding(DeterministicHashEmbedding):
    """Raises for texts containing a marker, embeds the rest."""

    def __init__(self, marker="FAIL", dimension=DIM):
        super().__init__(dimension)
        self.marker = marker

    async def embed_text(self, text):
        if self.marker in text:
            raise UpstreamError(f"embedding refused for {text!r}", status_code=500)
        return await super().embed_text(text)


def test_dimension_defaults_to_embedding_provider(service):
    assert service.dimension == DIM


def test_ensure_collection_idempotent(service):
    assert asyncio.run(service.ensure_collection()) is False


def test_ingest_then_search_round_trip(service):
    count = asyncio.run(service.ingest([
        {"text": "Qdrant is a vector database", "id": "qdrant"},
        {"text": "RAG combines retrieval with generation", "id": "rag"},
        {"text": "FastAPI is a Python web framework", "id": "fastapi"},
    ]))
    assert count == 3

    results = asyncio.run(service.search("Qdrant is a vector database", limit=1))

    assert len(results) == 1
    assert results[0].text == "Qdrant is a vector database"
    assert results[0].score == pytest.approx(1.0)
    assert results[0].metadata["document_id"] == "qdrant"


def test_question_finds_the_only_matching_document(service):
    asyncio.run(service.ingest([{"text": "Qdrant is a vector database"}]))

    results = asyncio.run(service.search("what is Qdrant", limit=1))

    assert len(results) == 1
    assert results[0].text == "Qdrant is a vector database"


def test_search_limit_and_ordering(service):
    asyncio.run(service.ingest([{"text": f"document {i}"} for i in range(5)]))

    results = asyncio.run(service.search("document 2", limit=3))

    assert len(results) == 3
    assert results[0].text == "document 2"
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)


def test_ingest_assigns_ids_and_keeps_metadata(service):
    asyncio.run(service.ingest([KnowledgeDocument(text="no id here", metadata={"source": "faq"})]))

    result = asyncio.run(service.search("no id here", limit=1))[0]

    assert result.metadata["source"] == "faq"
    assert result.metadata["text"] == "no id here"
    assert len(result.metadata["document_id"]) == 36  # uuid4


def test_reingest_same_id_overwrites(service):
    asyncio.run(service.ingest([{"id": "doc", "text": "old text"}]))
    asyncio.run(service.ingest([{"id": "doc", "text": "new text"}]))

    assert asyncio.run(service.vector_store.count("knowledge_base")) == 1
    assert asyncio.run(service.search("new text", limit=5))[0].text == "new text"


def test_ingest_empty_batch_rejected_before_any_work():
    embedder = MagicMock()
    embedder.get_dimension.return_value = DIM
    embedder.embed_text = AsyncMock()
    svc = KnowledgeService(embedder, SimpleInMemoryVectorStore())

    with pytest.raises(ValueError):
        asyncio.run(svc.ingest([]))
    embedder.embed_text.assert_not_called()


def test_ingest_failure_is_partial_and_not_rolled_back():
    store = SimpleInMemoryVectorStore()
    svc = KnowledgeService(FailingEmbedding(), store, collection="kb")
    asyncio.run(svc.ensure_collection())

    with pytest.raises(UpstreamError, match="FAIL"):
        asyncio.run(svc.ingest([
            {"id": "ok-1", "text": "stored fine"},
            {"id": "bad", "text": "FAIL here"},
            {"id": "ok-2", "text": "also stored"},
        ]))

    # Siblings of the failed document were applied
    assert asyncio.run(store.count("kb")) == 2


def test_ingest_emits_telemetry(service, telemetry):
    asyncio.run(service.ingest([{"text": "one"}, {"text": "two"}]))

    name, props = telemetry.emit_event.call_args.args
    assert name == "KnowledgeIngested"
    assert props["count"] == 2
    assert props["collection"] == "knowledge_base"


def test_search_with_unreachable_store_returns_empty(telemetry):
    store = MagicMock()
    store.search = AsyncMock(side_effect=StoreError("connection refused"))
    svc = KnowledgeService(DeterministicHashEmbedding(DIM), store, telemetry=telemetry)

    assert asyncio.run(svc.search("anything", limit=3)) == []

    outcome = asyncio.run(svc.search_detailed("anything", limit=3))
    assert outcome.degraded
    assert isinstance(outcome.error, StoreError)

    error, props = telemetry.emit_exception.call_args.args
    assert isinstance(error, StoreError)
    assert props["operation"] == "KnowledgeSearchFailed"


def test_search_with_failing_embedding_returns_empty(service):
    svc = KnowledgeService(FailingEmbedding(), service.vector_store, collection="knowledge_base")
    assert asyncio.run(svc.search("FAIL to embed", limit=3)) == []


def test_search_missing_collection_is_degraded_not_raised():
    svc = KnowledgeService(DeterministicHashEmbedding(DIM), SimpleInMemoryVectorStore(), collection="never_created")

    outcome = asyncio.run(svc.search_detailed("query", limit=3))

    assert outcome.results == []
    assert outcome.degraded


def test_search_sparse_collection_returns_what_exists(service):
    asyncio.run(service.ingest([{"text": "lonely"}]))
    assert len(asyncio.run(service.search("lonely", limit=10))) == 1


def test_health_check_delegates(service):
    assert asyncio.run(service.health_check()) is True

"""
Tests for the Qdrant adapter against a mocked async client.
"""

import asyncio
import uuid
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from qdrant_client import models

from ragrelay.core.errors import StoreError
from ragrelay.vector.qdrant_store import QdrantVectorStore, to_point_id
from ragrelay.vector.types import VectorRecord


def _client(existing=()):
    client = MagicMock()
    client.get_collections = AsyncMock(
        return_value=SimpleNamespace(collections=[SimpleNamespace(name=n) for n in existing])
    )
    client.create_collection = AsyncMock(return_value=True)
    client.upsert = AsyncMock()
    client.query_points = AsyncMock()
    client.count = AsyncMock(return_value=SimpleNamespace(count=7))
    client.close = AsyncMock()
    return client


def test_to_point_id_keeps_valid_ids():
    assert to_point_id(5) == 5
    assert to_point_id("42") == 42
    raw = str(uuid.uuid4())
    assert to_point_id(raw) == raw


def test_to_point_id_maps_other_strings_deterministically():
    first = to_point_id("qdrant-intro")
    assert first == to_point_id("qdrant-intro")
    assert first != to_point_id("rag-intro")
    uuid.UUID(first)  # valid UUID


def test_ensure_collection_creates_when_missing():
    client = _client(existing=["other"])
    store = QdrantVectorStore(client=client)

    created = asyncio.run(store.ensure_collection("knowledge_base", 1536))

    assert created is True
    kwargs = client.create_collection.call_args.kwargs
    assert kwargs["collection_name"] == "knowledge_base"
    assert kwargs["vectors_config"].size == 1536
    assert kwargs["vectors_config"].distance == models.Distance.COSINE


def test_ensure_collection_never_recreates():
    client = _client(existing=["knowledge_base"])
    store = QdrantVectorStore(client=client)

    assert asyncio.run(store.ensure_collection("knowledge_base", 1536)) is False
    client.create_collection.assert_not_called()


def test_ensure_collection_wraps_connectivity_errors():
    client = _client()
    client.get_collections.side_effect = ConnectionError("refused")
    store = QdrantVectorStore(client=client)

    with pytest.raises(StoreError, match="refused"):
        asyncio.run(store.ensure_collection("knowledge_base", 8))


def test_unsupported_distance_rejected():
    store = QdrantVectorStore(client=_client())
    with pytest.raises(StoreError):
        asyncio.run(store.ensure_collection("kb", 8, distance="manhattan"))


def test_upsert_waits_for_acknowledgement():
    client = _client()
    store = QdrantVectorStore(client=client)

    asyncio.run(store.upsert("kb", [
        VectorRecord(id="doc-1", vector=[0.1, 0.2], payload={"text": "hello", "document_id": "doc-1"}),
    ]))

    kwargs = client.upsert.call_args.kwargs
    assert kwargs["wait"] is True
    assert kwargs["collection_name"] == "kb"
    point = kwargs["points"][0]
    assert point.id == to_point_id("doc-1")
    assert point.payload["document_id"] == "doc-1"


def test_search_maps_scored_points():
    client = _client()
    client.query_points.return_value = SimpleNamespace(points=[
        SimpleNamespace(id="a", score=0.9, payload={"text": "Qdrant is a vector database"}),
        SimpleNamespace(id=3, score=0.4, payload=None),
    ])
    store = QdrantVectorStore(client=client)

    hits = asyncio.run(store.search("kb", [0.1, 0.2], limit=2))

    assert [(h.id, h.score) for h in hits] == [("a", 0.9), ("3", 0.4)]
    assert hits[0].payload["text"] == "Qdrant is a vector database"
    assert hits[1].payload == {}
    assert client.query_points.call_args.kwargs["with_payload"] is True


def test_search_errors_become_store_errors():
    client = _client()
    client.query_points.side_effect = RuntimeError("collection not found")
    store = QdrantVectorStore(client=client)

    with pytest.raises(StoreError) as exc_info:
        asyncio.run(store.search("kb", [0.1], limit=1))
    assert exc_info.value.collection == "kb"


def test_count_and_health_check():
    client = _client()
    store = QdrantVectorStore(client=client)

    assert asyncio.run(store.count("kb")) == 7
    assert asyncio.run(store.health_check()) is True

    client.get_collections.side_effect = ConnectionError("down")
    assert asyncio.run(store.health_check()) is False


def test_close_closes_client():
    client = _client()
    asyncio.run(QdrantVectorStore(client=client).close())
    client.close.assert_awaited_once()

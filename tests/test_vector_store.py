"""
Test cases for the in-memory vector store.
"""

import asyncio
import pytest

from ragrelay.core.errors import StoreError
from ragrelay.vector import SimpleInMemoryVectorStore, VectorRecord


def _store(dimension=3, distance="cosine"):
    store = SimpleInMemoryVectorStore()
    asyncio.run(store.ensure_collection("kb", dimension, distance))
    return store


def test_ensure_collection_is_idempotent():
    store = SimpleInMemoryVectorStore()

    assert asyncio.run(store.ensure_collection("kb", 3)) is True
    asyncio.run(store.upsert("kb", [VectorRecord(id="a", vector=[1.0, 0.0, 0.0])]))
    assert asyncio.run(store.ensure_collection("kb", 3)) is False

    # Existing data survives a second ensure
    assert asyncio.run(store.count("kb")) == 1


def test_search_orders_by_descending_score():
    store = _store()
    asyncio.run(store.upsert("kb", [
        VectorRecord(id="x", vector=[1.0, 0.0, 0.0], payload={"text": "x"}),
        VectorRecord(id="y", vector=[0.0, 1.0, 0.0], payload={"text": "y"}),
        VectorRecord(id="xy", vector=[1.0, 1.0, 0.0], payload={"text": "xy"}),
    ]))

    hits = asyncio.run(store.search("kb", [1.0, 0.1, 0.0], limit=3))

    assert [h.id for h in hits] == ["x", "xy", "y"]
    assert hits[0].score >= hits[1].score >= hits[2].score
    assert hits[0].payload == {"text": "x"}


def test_search_returns_fewer_than_limit_for_sparse_collection():
    store = _store()
    asyncio.run(store.upsert("kb", [VectorRecord(id="only", vector=[0.0, 0.0, 1.0])]))

    hits = asyncio.run(store.search("kb", [0.0, 0.0, 1.0], limit=5))

    assert len(hits) == 1
    assert hits[0].score == pytest.approx(1.0)


def test_search_empty_collection_returns_nothing():
    store = _store()
    assert asyncio.run(store.search("kb", [1.0, 0.0, 0.0], limit=3)) == []


def test_upsert_same_id_replaces_point():
    store = _store()
    asyncio.run(store.upsert("kb", [VectorRecord(id="doc", vector=[1.0, 0.0, 0.0], payload={"v": 1})]))
    asyncio.run(store.upsert("kb", [VectorRecord(id="doc", vector=[0.0, 1.0, 0.0], payload={"v": 2})]))

    assert asyncio.run(store.count("kb")) == 1
    hits = asyncio.run(store.search("kb", [0.0, 1.0, 0.0], limit=1))
    assert hits[0].payload == {"v": 2}
    assert hits[0].score == pytest.approx(1.0)


def test_dimension_mismatch_raises_store_error():
    store = _store(dimension=3)

    with pytest.raises(StoreError):
        asyncio.run(store.upsert("kb", [VectorRecord(id="bad", vector=[1.0, 0.0])]))
    with pytest.raises(StoreError):
        asyncio.run(store.search("kb", [1.0], limit=1))


def test_unknown_collection_raises_store_error():
    store = SimpleInMemoryVectorStore()

    with pytest.raises(StoreError) as exc_info:
        asyncio.run(store.search("missing", [1.0], limit=1))
    assert exc_info.value.collection == "missing"


def test_euclid_scores_prefer_nearest_point():
    store = _store(dimension=2, distance="euclid")
    asyncio.run(store.upsert("kb", [
        VectorRecord(id="near", vector=[1.0, 1.0]),
        VectorRecord(id="far", vector=[10.0, 10.0]),
    ]))

    hits = asyncio.run(store.search("kb", [0.0, 0.0], limit=2))

    assert [h.id for h in hits] == ["near", "far"]
    assert hits[0].score > hits[1].score


def test_health_check_and_clear():
    store = _store()
    assert asyncio.run(store.health_check()) is True

    store.clear()
    with pytest.raises(StoreError):
        asyncio.run(store.count("kb"))

"""
Qdrant-backed vector store (production backend).

Qdrant only accepts unsigned integers or UUIDs as point ids, so other
string ids are mapped to a deterministic UUID5. The same document id
therefore always lands on the same point and re-ingestion overwrites it.
The caller's id is kept in the payload.
"""

import logging
import uuid
from typing import List, Sequence, Union

from qdrant_client import AsyncQdrantClient, models

from ..core.errors import StoreError
from .index import IVectorStore
from .types import QueryResult, VectorRecord


logger = logging.getLogger(__name__)

POINT_ID_NAMESPACE = uuid.UUID("6f1c1a55-8f4e-4c55-9a53-3b0c6f3f8d21")

_DISTANCES = {
    "cosine": models.Distance.COSINE,
    "dot": models.Distance.DOT,
    "euclid": models.Distance.EUCLID,
}


def to_point_id(raw_id: Union[str, int]) -> Union[str, int]:
    """Map an arbitrary document id onto a valid Qdrant point id."""
    if isinstance(raw_id, int) and raw_id >= 0:
        return raw_id
    text = str(raw_id)
    if text.isdigit():
        return int(text)
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return str(uuid.uuid5(POINT_ID_NAMESPACE, text))


class QdrantVectorStore(IVectorStore):
    """
    Vector store backed by a Qdrant server through the async REST client.

    Usage:
        store = QdrantVectorStore(url="http://qdrant:6333")
        await store.ensure_collection("knowledge_base", 1536)
        await store.upsert("knowledge_base", records)
        hits = await store.search("knowledge_base", vector, limit=3)
    """

    def __init__(self, url: str = "http://localhost:6333", api_key: str = None, client: AsyncQdrantClient = None):
        self.url = url
        self.client = client if client is not None else AsyncQdrantClient(url=url, api_key=api_key)

    async def ensure_collection(self, name: str, dimension: int, distance: str = "cosine") -> bool:
        if distance not in _DISTANCES:
            raise StoreError(f"Unsupported distance metric: {distance}", collection=name)

        try:
            collections = await self.client.get_collections()
            exists = any(c.name == name for c in collections.collections)
            if exists:
                return False

            await self.client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(size=dimension, distance=_DISTANCES[distance]),
            )
            return True
        except Exception as e:
            raise StoreError(f"Failed to initialize collection '{name}': {e}", collection=name) from e

    async def upsert(self, collection: str, records: Sequence[VectorRecord]) -> None:
        points = [
            models.PointStruct(id=to_point_id(record.id), vector=list(record.vector), payload=record.payload)
            for record in records
        ]
        try:
            # wait=True: return only once the write is applied
            await self.client.upsert(collection_name=collection, points=points, wait=True)
        except Exception as e:
            raise StoreError(f"Upsert into '{collection}' failed: {e}", collection=collection) from e

    async def search(self, collection: str, query_vector: Sequence[float], limit: int = 5) -> List[QueryResult]:
        try:
            response = await self.client.query_points(
                collection_name=collection,
                query=list(query_vector),
                limit=limit,
                with_payload=True,
            )
        except Exception as e:
            raise StoreError(f"Search in '{collection}' failed: {e}", collection=collection) from e

        return [
            QueryResult(id=str(point.id), score=point.score, payload=dict(point.payload or {}))
            for point in response.points
        ]

    async def count(self, collection: str) -> int:
        try:
            result = await self.client.count(collection_name=collection, exact=True)
        except Exception as e:
            raise StoreError(f"Count of '{collection}' failed: {e}", collection=collection) from e
        return result.count

    async def health_check(self) -> bool:
        try:
            await self.client.get_collections()
            return True
        except Exception as e:
            logger.error(f"Qdrant health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.close()

"""
Vector store contract and the in-memory reference implementation.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

import numpy as np

from ..core.errors import StoreError
from .types import QueryResult, VectorRecord


class IVectorStore(ABC):
    """Abstract interface for vector storage operations.

    Every operation except ``health_check`` raises ``StoreError`` when the
    store is unreachable or rejects the request.
    """

    @abstractmethod
    async def ensure_collection(self, name: str, dimension: int, distance: str = "cosine") -> bool:
        """Create the collection if missing. Returns True if it was created.

        Never drops or recreates an existing collection.
        """
        pass

    @abstractmethod
    async def upsert(self, collection: str, records: Sequence[VectorRecord]) -> None:
        """Insert or replace points. Returns only once the write is durable."""
        pass

    @abstractmethod
    async def search(self, collection: str, query_vector: Sequence[float], limit: int = 5) -> List[QueryResult]:
        """Return up to ``limit`` hits ordered by descending score."""
        pass

    @abstractmethod
    async def count(self, collection: str) -> int:
        """Number of points stored in the collection."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """True iff the store is reachable. Never raises."""
        pass

    async def close(self) -> None:
        """Release client resources, if any."""
        return None


def _score(stored: np.ndarray, query: np.ndarray, distance: str) -> float:
    if distance == "euclid":
        # Negated so larger is still better
        return -float(np.linalg.norm(stored - query))
    return float(np.dot(stored, query))


class _Collection:
    def __init__(self, dimension: int, distance: str):
        self.dimension = dimension
        self.distance = distance
        self.records: Dict[str, VectorRecord] = {}  # point id -> record
        self.index: Dict[str, np.ndarray] = {}      # point id -> prepared vector

    def prepare(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float64)
        if self.distance == "cosine":
            norm = np.linalg.norm(array)
            if norm > 0:
                return array / norm
        return array


class SimpleInMemoryVectorStore(IVectorStore):
    """In-memory implementation of IVectorStore (numpy similarity).

    Writes are applied synchronously, so they are visible to the next
    search as soon as ``upsert`` returns.
    """

    def __init__(self):
        self._collections: Dict[str, _Collection] = {}

    def _get(self, name: str) -> _Collection:
        if name not in self._collections:
            raise StoreError(f"Collection '{name}' does not exist", collection=name)
        return self._collections[name]

    async def ensure_collection(self, name: str, dimension: int, distance: str = "cosine") -> bool:
        if name in self._collections:
            return False
        self._collections[name] = _Collection(dimension, distance)
        return True

    async def upsert(self, collection: str, records: Sequence[VectorRecord]) -> None:
        coll = self._get(collection)

        # Validate the whole batch before touching the collection
        for record in records:
            if len(record.vector) != coll.dimension:
                raise StoreError(
                    f"Vector dimension {len(record.vector)} does not match "
                    f"collection dimension {coll.dimension}",
                    collection=collection,
                )

        for record in records:
            coll.records[record.id] = record
            coll.index[record.id] = coll.prepare(record.vector)

    async def search(self, collection: str, query_vector: Sequence[float], limit: int = 5) -> List[QueryResult]:
        coll = self._get(collection)
        if not coll.index or limit <= 0:
            return []

        if len(query_vector) != coll.dimension:
            raise StoreError(
                f"Query dimension {len(query_vector)} does not match "
                f"collection dimension {coll.dimension}",
                collection=collection,
            )

        query = coll.prepare(query_vector)
        scored = [
            (record_id, _score(stored, query, coll.distance))
            for record_id, stored in coll.index.items()
        ]
        # sorted() is stable: ties keep insertion order
        scored.sort(key=lambda item: item[1], reverse=True)

        return [
            QueryResult(id=record_id, score=score, payload=dict(coll.records[record_id].payload))
            for record_id, score in scored[:limit]
        ]

    async def count(self, collection: str) -> int:
        return len(self._get(collection).records)

    async def health_check(self) -> bool:
        return True

    def clear(self) -> None:
        """Drop every collection. Test helper."""
        self._collections.clear()

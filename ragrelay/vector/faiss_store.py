"""
FAISS-backed vector store. Process-local, like the in-memory store, but
with FAISS doing the similarity search.
"""

import math
from typing import Dict, List, Sequence

import numpy as np

from ..core.errors import StoreError
from .index import IVectorStore
from .types import QueryResult, VectorRecord


class _FaissCollection:
    """One FAISS index plus the id bookkeeping FAISS does not do for us."""

    def __init__(self, faiss, dimension: int, distance: str):
        self.dimension = dimension
        self.distance = distance

        # Inner product for cosine (on normalized vectors) and dot; L2 for euclid
        flat = faiss.IndexFlatL2(dimension) if distance == "euclid" else faiss.IndexFlatIP(dimension)
        # IDMap2 gives us stable int64 labels and remove_ids for replacement
        self.index = faiss.IndexIDMap2(flat)

        self.label_by_id: Dict[str, int] = {}
        self.id_by_label: Dict[int, str] = {}
        self.payloads: Dict[str, dict] = {}
        self.next_label = 0

    def prepare(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float32).reshape(1, -1)
        if self.distance == "cosine":
            norm = np.linalg.norm(array)
            if norm > 0:
                array = array / norm
        return array.astype(np.float32)


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore."""

    def __init__(self):
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        self.faiss = faiss
        self._collections: Dict[str, _FaissCollection] = {}

    def _get(self, name: str) -> _FaissCollection:
        if name not in self._collections:
            raise StoreError(f"Collection '{name}' does not exist", collection=name)
        return self._collections[name]

    async def ensure_collection(self, name: str, dimension: int, distance: str = "cosine") -> bool:
        if name in self._collections:
            return False
        self._collections[name] = _FaissCollection(self.faiss, dimension, distance)
        return True

    async def upsert(self, collection: str, records: Sequence[VectorRecord]) -> None:
        coll = self._get(collection)

        for record in records:
            if len(record.vector) != coll.dimension:
                raise StoreError(
                    f"Vector dimension {len(record.vector)} does not match "
                    f"expected dimension {coll.dimension}",
                    collection=collection,
                )

        for record in records:
            # Replace: drop the old vector, keep the id -> label bookkeeping fresh
            old_label = coll.label_by_id.pop(record.id, None)
            if old_label is not None:
                coll.index.remove_ids(np.array([old_label], dtype=np.int64))
                coll.id_by_label.pop(old_label, None)

            label = coll.next_label
            coll.next_label += 1
            coll.index.add_with_ids(coll.prepare(record.vector), np.array([label], dtype=np.int64))

            coll.label_by_id[record.id] = label
            coll.id_by_label[label] = record.id
            coll.payloads[record.id] = dict(record.payload)

    async def search(self, collection: str, query_vector: Sequence[float], limit: int = 5) -> List[QueryResult]:
        coll = self._get(collection)
        if not coll.index.ntotal or limit <= 0:
            return []

        if len(query_vector) != coll.dimension:
            raise StoreError(
                f"Query dimension {len(query_vector)} does not match "
                f"expected dimension {coll.dimension}",
                collection=collection,
            )

        scores, labels = coll.index.search(coll.prepare(query_vector), min(limit, coll.index.ntotal))

        results = []
        for score, label in zip(scores[0], labels[0]):
            record_id = coll.id_by_label.get(int(label))
            if record_id is None:  # -1 padding
                continue
            if coll.distance == "euclid":
                # IndexFlatL2 reports squared distances, smaller is better
                value = -math.sqrt(max(float(score), 0.0))
            else:
                value = float(score)
            results.append(QueryResult(id=record_id, score=value, payload=dict(coll.payloads[record_id])))

        return results

    async def count(self, collection: str) -> int:
        return int(self._get(collection).index.ntotal)

    async def health_check(self) -> bool:
        return True

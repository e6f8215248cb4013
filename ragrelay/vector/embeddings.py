"""
Embedding providers. All expose the same async ``embed_text`` so the
knowledge service never knows whether vectors come from the remote API,
a local model or the deterministic hash used in tests.
"""

import asyncio
import hashlib
import struct
from abc import ABC, abstractmethod
from typing import List


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    Identical text always maps to the identical vector, so a document
    searched with its own text scores a perfect cosine similarity. No model
    or network is involved.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    def _vector(self, text: str) -> List[float]:
        vector: List[float] = []
        counter = 0
        while len(vector) < self.dimension:
            digest = hashlib.sha256(f"{counter}:{text}".encode("utf-8")).digest()
            # 8 unsigned 32-bit ints per digest, mapped to [-1, 1]
            for (value,) in struct.iter_unpack(">I", digest):
                vector.append((value / 2**32) * 2 - 1)
            counter += 1
        return vector[:self.dimension]

    async def embed_text(self, text: str) -> List[float]:
        """Generate deterministic embedding vector using hash function."""
        return self._vector(text)

    def get_dimension(self) -> int:
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using a local pre-trained model.

    Encoding is CPU-bound, so it runs in a worker thread to keep the event
    loop responsive.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _encode(self, text: str) -> List[float]:
        return self.model.encode(text, convert_to_tensor=False).tolist()

    async def embed_text(self, text: str) -> List[float]:
        return await asyncio.to_thread(self._encode, text)

    def get_dimension(self) -> int:
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class RemoteEmbeddingProvider(IEmbeddingProvider):
    """
    Embeddings from the upstream provider's ``/embeddings`` endpoint.

    Thin adapter over ``OpenRouterClient.embed``; errors from the client
    (``ConfigurationError``, ``UpstreamError``, ``ProtocolError``) pass
    through unchanged.
    """

    def __init__(self, client, dimension: int = 1536):
        self.client = client
        self.dimension = dimension

    async def embed_text(self, text: str) -> List[float]:
        return await self.client.embed(text)

    def get_dimension(self) -> int:
        return self.dimension

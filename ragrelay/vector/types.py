"""
Value types shared by the embedding providers, vector stores and the
knowledge service.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class VectorRecord:
    """A point handed to a vector store."""

    id: str
    """Point identifier; upserting an existing id replaces the point"""

    vector: List[float]
    """The embedding of the point's text"""

    payload: Dict[str, Any] = field(default_factory=dict)
    """Stored alongside the vector and returned with search hits"""


@dataclass
class QueryResult:
    """Represents a search hit from a vector store."""

    id: str
    """Identifier of the matching point"""

    score: float
    """Similarity score; range depends on the store's distance metric"""

    payload: Dict[str, Any] = field(default_factory=dict)
    """Payload stored with the matching point"""


@dataclass
class KnowledgeDocument:
    """A document submitted for ingestion."""

    text: str
    id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ScoredResult:
    """A knowledge search result, produced per call and never persisted."""

    text: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

"""
Runtime configuration.

Everything is read from environment variables with development defaults.
The server entry script loads a ``.env`` file first (python-dotenv), so the
values below already see it. Factory helpers at the bottom turn the
provider flags into concrete components.
"""

import os
from typing import List

# Upstream provider (OpenRouter or any OpenAI-compatible endpoint)
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
CHAT_MODEL = os.getenv("CHAT_MODEL", "openai/gpt-3.5-turbo")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3001")
APP_TITLE = os.getenv("APP_TITLE", "Knowledge Chat")

# Embeddings
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "openrouter")  # openrouter|local|hash
EMBED_MODEL = os.getenv("EMBED_MODEL", "openai/text-embedding-3-small")
LOCAL_EMBED_MODEL = os.getenv("LOCAL_EMBED_MODEL", "all-mpnet-base-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "1536"))  # text-embedding-3-small; the local model reports its own
EMBED_DIM_SET = "EMBED_DIM" in os.environ

# Vector store
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "qdrant")  # memory|faiss|qdrant
QDRANT_URL = os.getenv("QDRANT_URL", "http://qdrant:6333")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "knowledge_base")
VECTOR_DISTANCE = os.getenv("VECTOR_DISTANCE", "cosine")  # cosine|dot|euclid
RAG_TOP_K = int(os.getenv("RAG_TOP_K", "3"))

# Telemetry
TELEMETRY_ENABLED = os.getenv("TELEMETRY_ENABLED", "true").lower() == "true"
TELEMETRY_EVENT_ATTEMPTS = int(os.getenv("TELEMETRY_EVENT_ATTEMPTS", "2"))
TELEMETRY_EXCEPTION_ATTEMPTS = int(os.getenv("TELEMETRY_EXCEPTION_ATTEMPTS", "3"))
TELEMETRY_BASE_DELAY_MS = int(os.getenv("TELEMETRY_BASE_DELAY_MS", "100"))

# HTTP surface
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

SERVICE_NAME = "ragrelay-api"
VERSION = "1.0.0"

VALID_VECTOR_PROVIDERS = ("memory", "faiss", "qdrant")
VALID_EMBED_PROVIDERS = ("openrouter", "local", "hash")
VALID_DISTANCES = ("cosine", "dot", "euclid")


def debug_enabled() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_cors_origins() -> List[str]:
    return [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]


def get_api_key():
    """Credential for the upstream provider, or None when unset."""
    return OPENROUTER_API_KEY or None


def get_provider_client():
    """Build the shared upstream client (chat completions and embeddings)."""
    from ragrelay.providers.openrouter import OpenRouterClient
    return OpenRouterClient(
        api_key=get_api_key(),
        base_url=OPENROUTER_BASE_URL,
        embedding_model=EMBED_MODEL,
        referer=FRONTEND_URL,
        title=APP_TITLE,
    )


def get_vector_store():
    """Get configured vector store implementation."""
    if VECTOR_PROVIDER == "memory":
        from ragrelay.vector.index import SimpleInMemoryVectorStore
        return SimpleInMemoryVectorStore()
    elif VECTOR_PROVIDER == "faiss":
        from ragrelay.vector.faiss_store import FaissVectorStore
        return FaissVectorStore()
    elif VECTOR_PROVIDER == "qdrant":
        from ragrelay.vector.qdrant_store import QdrantVectorStore
        return QdrantVectorStore(url=QDRANT_URL, api_key=QDRANT_API_KEY)

    from ragrelay.core.errors import ConfigurationError
    raise ConfigurationError(f"Unknown VECTOR_PROVIDER: {VECTOR_PROVIDER}")


def get_embedding_provider(provider_client=None):
    """Get configured embedding provider implementation."""
    if EMBED_PROVIDER == "hash":
        from ragrelay.vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=EMBED_DIM)
    elif EMBED_PROVIDER == "local":
        from ragrelay.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(LOCAL_EMBED_MODEL)
    elif EMBED_PROVIDER == "openrouter":
        from ragrelay.vector.embeddings import RemoteEmbeddingProvider
        client = provider_client if provider_client is not None else get_provider_client()
        return RemoteEmbeddingProvider(client, dimension=EMBED_DIM)

    from ragrelay.core.errors import ConfigurationError
    raise ConfigurationError(f"Unknown EMBED_PROVIDER: {EMBED_PROVIDER}")


def get_telemetry():
    """Build the process-wide telemetry sink. Call once at start-up."""
    from ragrelay.telemetry.sink import LoggingTransport, NullTransport, TelemetrySink
    transport = LoggingTransport() if TELEMETRY_ENABLED else NullTransport()
    return TelemetrySink(
        transport,
        enabled=TELEMETRY_ENABLED,
        event_attempts=TELEMETRY_EVENT_ATTEMPTS,
        exception_attempts=TELEMETRY_EXCEPTION_ATTEMPTS,
        base_delay=TELEMETRY_BASE_DELAY_MS / 1000.0,
    )


def validate_config() -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    if not get_api_key():
        issues.append("OPENROUTER_API_KEY not set - AI chat will not work")

    if VECTOR_PROVIDER not in VALID_VECTOR_PROVIDERS:
        issues.append(f"Invalid VECTOR_PROVIDER: {VECTOR_PROVIDER}")

    if EMBED_PROVIDER not in VALID_EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if VECTOR_DISTANCE not in VALID_DISTANCES:
        issues.append(f"Invalid VECTOR_DISTANCE: {VECTOR_DISTANCE}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if EMBED_PROVIDER == "local" and EMBED_DIM_SET:
        issues.append(f"EMBED_DIM={EMBED_DIM} is ignored with EMBED_PROVIDER=local; {LOCAL_EMBED_MODEL} sets the dimension")

    if RAG_TOP_K < 1:
        issues.append("RAG_TOP_K must be >= 1")

    if not COLLECTION_NAME.strip():
        issues.append("COLLECTION_NAME must not be empty")

    return issues

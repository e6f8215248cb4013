"""
Exception taxonomy for the retrieval and relay pipeline.

Adapters wrap third-party failures into these types at the boundary so the
services above them only ever reason about four kinds of error.
"""

from typing import Any, Optional


class RelayError(Exception):
    """Base exception for all ragrelay errors."""
    pass


class ConfigurationError(RelayError):
    """
    Missing or invalid configuration.

    Raised when:
    - No provider credential is configured
    - The collection name or dimension is unusable
    - An unknown backend is selected

    Fatal at start-up or first use, never retried.
    """
    pass


class UpstreamError(RelayError):
    """
    Non-success response from an external provider.

    Carries the upstream status (``None`` for transport failures such as
    timeouts or refused connections) and the response body so callers can
    surface both to the client.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProtocolError(RelayError):
    """
    Provider answered successfully but with an unexpected shape.

    Raised when:
    - The response body is not JSON
    - The expected vector or message field is missing
    """
    pass


class StoreError(RelayError):
    """
    Vector store unreachable or rejecting an operation.

    Surfaced to ingest callers, swallowed to an empty result by search.
    """

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection

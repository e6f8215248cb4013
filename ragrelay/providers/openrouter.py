"""
OpenRouter provider client.

Thin async HTTP client for an OpenAI-compatible API (OpenRouter by default):
chat completions in streaming and blocking mode, and text embeddings.
No retries here; callers decide.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ..core.errors import ConfigurationError, ProtocolError, UpstreamError


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


def _error_body(response: httpx.Response) -> Any:
    """Decoded error body: JSON when possible, raw text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text


class OpenRouterClient:
    """
    HTTP client for the upstream chat / embedding provider.

    Every request carries ``Authorization: Bearer <key>``; the optional
    referer and title are sent as OpenRouter attribution headers.

    Example:
        >>> client = OpenRouterClient(api_key="sk-...", embedding_model="openai/text-embedding-3-small")
        >>> vector = await client.embed("What is Qdrant?")
        >>> async with client.stream_chat_completion(messages, model="openai/gpt-3.5-turbo") as response:
        ...     async for chunk in response.aiter_bytes():
        ...         ...
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        embedding_model: str = "openai/text-embedding-3-small",
        referer: Optional[str] = None,
        title: Optional[str] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.embedding_model = embedding_model
        self.referer = referer
        self.title = title

        # A client handed in by the caller (tests, shared pools) is not ours to close
        self._owns_client = http_client is None
        self._client = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)

        logger.debug(f"Initialized OpenRouterClient: base_url={self.base_url}")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("OPENROUTER_API_KEY not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.title:
            headers["X-Title"] = self.title
        return headers

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        headers = self._headers()
        url = f"{self.base_url}{path}"
        logger.debug(f"Making request to {url}")
        try:
            return await self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach upstream provider: {e}")
            raise UpstreamError(f"Failed to connect to upstream provider at {self.base_url}: {e}") from e

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text with the configured embedding model.

        Raises:
            ConfigurationError: no credential configured
            UpstreamError: non-success status or transport failure
            ProtocolError: body lacks ``data[0].embedding``
        """
        response = await self._post("/embeddings", {"model": self.embedding_model, "input": text})

        if not response.is_success:
            body = _error_body(response)
            raise UpstreamError(
                f"Embedding API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
            embedding = data["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProtocolError(f"Embedding response lacks data[0].embedding: {e}") from e

        if not isinstance(embedding, list):
            raise ProtocolError("Embedding response field data[0].embedding is not a list")
        return embedding

    async def create_chat_completion(self, messages: List[Dict[str, str]], model: str, **kwargs) -> Dict[str, Any]:
        """
        Blocking (non-streaming) chat completion.

        Returns the decoded response object verbatim.
        """
        payload = {"model": model, "messages": messages, "stream": False}
        payload.update(kwargs)

        response = await self._post("/chat/completions", payload)

        if not response.is_success:
            body = _error_body(response)
            raise UpstreamError(
                f"Chat API error: {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON response from chat API: {e}") from e

        if not isinstance(data, dict):
            raise ProtocolError("Chat API response is not a JSON object")
        return data

    @asynccontextmanager
    async def stream_chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: str,
        **kwargs,
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming chat completion.

        Yields the live response once the upstream has answered with a
        success status; its body is the raw SSE byte stream. On a
        non-success status the body is read and ``UpstreamError`` raised
        before anything is yielded; transport errors while the body is
        being read surface as ``UpstreamError`` too. The response is always
        closed on exit.
        """
        payload = {"model": model, "messages": messages, "stream": True}
        payload.update(kwargs)

        request = self._client.build_request(
            "POST",
            f"{self.base_url}/chat/completions",
            json=payload,
            headers=self._headers(),
        )

        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Failed to open upstream stream: {e}")
            raise UpstreamError(f"Failed to connect to upstream provider at {self.base_url}: {e}") from e

        try:
            if not response.is_success:
                await response.aread()
                raise UpstreamError(
                    f"Chat API error: {response.status_code}",
                    status_code=response.status_code,
                    body=_error_body(response),
                )
            try:
                yield response
            except httpx.HTTPError as e:
                logger.error(f"Upstream stream interrupted: {e}")
                raise UpstreamError(f"Upstream stream interrupted: {e}") from e
        finally:
            await response.aclose()

    async def health_check(self) -> bool:
        """True if the provider answers the model listing endpoint."""
        try:
            response = await self._client.get(f"{self.base_url}/models", headers=self._headers())
            return response.is_success
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

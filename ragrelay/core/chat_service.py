"""
Chat service: one chat request end to end.

Retrieval, context injection, upstream dispatch and relay, with telemetry
observing each stage. Retrieval problems never fail a chat; upstream
problems surface as ``UpstreamError`` (blocking mode) or as a single
terminal error frame (streaming mode).
"""

import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from util.logging import logger as structured_logger

from ..relay.stream import RelayEvent, StreamRelay, encode_sse
from ..vector.types import ScoredResult
from .context import Message, inject, retrieval_query
from .errors import ConfigurationError, UpstreamError
from .knowledge import KnowledgeService


@dataclass
class PreparedChat:
    """Conversation ready for dispatch."""
    model: str
    messages: List[Message]
    streaming: bool
    results: List[ScoredResult] = field(default_factory=list)
    degraded: bool = False
    started: float = field(default_factory=time.monotonic)

    @property
    def rag_enabled(self) -> bool:
        return bool(self.results)

    def elapsed_ms(self) -> int:
        return round((time.monotonic() - self.started) * 1000)


class ChatService:
    """
    Usage:
        service = ChatService(client, knowledge, telemetry, default_model="openai/gpt-3.5-turbo")
        chat = await service.prepare(messages, stream=True)
        async for frame in service.stream(chat):
            ...
    """

    def __init__(
        self,
        client,
        knowledge: Optional[KnowledgeService] = None,
        telemetry=None,
        default_model: str = "openai/gpt-3.5-turbo",
        top_k: int = 3,
    ):
        self.client = client
        self.knowledge = knowledge
        self.telemetry = telemetry
        self.default_model = default_model
        self.top_k = top_k

    @property
    def configured(self) -> bool:
        return bool(getattr(self.client, "configured", False))

    async def prepare(
        self,
        messages: Sequence[Message],
        model: Optional[str] = None,
        stream: bool = True,
    ) -> PreparedChat:
        """
        Retrieve knowledge for the last user turn and inject it.

        Raises:
            ConfigurationError: no upstream credential is configured
        """
        started = time.monotonic()
        if not self.configured:
            raise ConfigurationError("OpenRouter API key not configured")

        model = model or self.default_model
        conversation = list(messages)
        results: List[ScoredResult] = []
        degraded = False

        query = retrieval_query(conversation)
        if self.knowledge is not None and query:
            outcome = await self.knowledge.search_detailed(query, self.top_k)
            results, degraded = outcome.results, outcome.degraded

        chat = PreparedChat(
            model=model,
            messages=inject(conversation, results),
            streaming=stream,
            results=results,
            degraded=degraded,
            started=started,
        )
        if chat.rag_enabled:
            structured_logger.info(f"RAG: Found {len(results)} relevant documents")

        self._emit_event("AIChatRequest", {
            "messageCount": len(conversation),
            "model": model,
            "streaming": stream,
            "ragEnabled": chat.rag_enabled,
        })
        return chat

    async def complete(self, chat: PreparedChat) -> Dict[str, Any]:
        """Blocking completion; the upstream response object is returned verbatim."""
        try:
            data = await self.client.create_chat_completion(chat.messages, chat.model)
        except UpstreamError as e:
            self._report_upstream_error("chat.completion", e)
            raise

        duration = chat.elapsed_ms()
        usage = data.get("usage") or {}
        self._emit_metric("AIChatDuration", duration)
        self._emit_event("AIChatCompleted", {
            "model": chat.model,
            "tokensUsed": usage.get("total_tokens") if isinstance(usage, dict) else None,
            "duration": duration,
        })
        return data

    async def stream(self, chat: PreparedChat) -> AsyncIterator[str]:
        """
        Streamed completion as SSE frames.

        Ends with exactly one ``[DONE]`` frame, or with exactly one error
        frame if the upstream refuses or drops the stream.
        """
        relay = StreamRelay()
        try:
            async with self.client.stream_chat_completion(chat.messages, chat.model) as response:
                async for event in relay.events(response.aiter_bytes()):
                    yield encode_sse(event)
        except UpstreamError as e:
            self._report_upstream_error("chat.stream", e)
            details = e.body if e.body is not None else str(e)
            yield encode_sse(RelayEvent.error(e.status_code, details))
            return

        summary = relay.summary
        duration = chat.elapsed_ms()
        structured_logger.log_relay(
            chat.model, summary.delta_count, summary.skipped_frames, len(summary.full_text), summary.terminated
        )
        self._emit_metric("AIChatStreamDuration", duration)
        self._emit_event("AIChatCompleted", {
            "model": chat.model,
            "responseLength": len(summary.full_text),
            "duration": duration,
        })

    def _report_upstream_error(self, operation: str, error: UpstreamError) -> None:
        structured_logger.log_upstream_error(operation, error.status_code, error.body)
        if self.telemetry is not None:
            self.telemetry.emit_exception(error, {"operation": "OpenRouterAPIError", "status": error.status_code})

    def _emit_event(self, name: str, properties: Dict[str, Any]) -> None:
        if self.telemetry is not None:
            self.telemetry.emit_event(name, properties)

    def _emit_metric(self, name: str, value: float) -> None:
        if self.telemetry is not None:
            self.telemetry.emit_metric(name, value)

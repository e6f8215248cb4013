"""
Server-Sent-Events relay.

Consumes the raw byte stream of an OpenAI-compatible streaming completion
and re-emits it as normalized events. Network reads do not respect frame
boundaries, so bytes are buffered and only complete lines are processed;
a delta split mid-frame across two reads is reassembled, never dropped.

State machine, per line:

    AWAITING_FRAME --data: line--> PARSING_PAYLOAD --delta--> EMITTING --> AWAITING_FRAME
                                          |
                                          +--[DONE] / end of input--> TERMINATED

Blank lines, comment/keep-alive lines and frames that are not valid JSON
are skipped. A stream always ends with exactly one terminal marker.
"""

import codecs
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, List, Optional, Union


logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


class RelayState(Enum):
    AWAITING_FRAME = "awaiting_frame"
    PARSING_PAYLOAD = "parsing_payload"
    EMITTING = "emitting"
    TERMINATED = "terminated"


@dataclass
class RelayEvent:
    """Normalized downstream event."""
    kind: str  # "delta", "done" or "error"
    content: Optional[str] = None
    status: Optional[int] = None
    details: Any = None

    @classmethod
    def delta(cls, content: str) -> "RelayEvent":
        return cls(kind="delta", content=content)

    @classmethod
    def done(cls) -> "RelayEvent":
        return cls(kind="done")

    @classmethod
    def error(cls, status: Optional[int], details: Any) -> "RelayEvent":
        return cls(kind="error", status=status, details=details)

    @property
    def terminal(self) -> bool:
        return self.kind in ("done", "error")


def encode_sse(event: RelayEvent) -> str:
    """Serialize an event as one SSE frame."""
    if event.kind == "delta":
        data = json.dumps({"content": event.content})
    elif event.kind == "done":
        data = DONE_MARKER
    else:
        data = json.dumps({"error": "AI API error", "status": event.status, "details": event.details}, default=str)
    return f"{DATA_PREFIX} {data}\n\n"


def extract_delta(payload: Any) -> Optional[str]:
    """``choices[0].delta.content`` if present and a string."""
    try:
        content = payload["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) else None


class LineBuffer:
    """
    Incremental bytes-to-lines splitter.

    Decodes UTF-8 incrementally (a multi-byte character split across two
    chunks is held back until complete) and keeps the trailing partial
    line until the next chunk arrives.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Append a chunk and return the lines it completed."""
        if isinstance(chunk, str):
            self._pending += chunk
        else:
            self._pending += self._decoder.decode(chunk)

        *lines, self._pending = self._pending.split("\n")
        return [line[:-1] if line.endswith("\r") else line for line in lines]

    def flush(self) -> Optional[str]:
        """Remaining partial line at end of input, or None if only whitespace is left."""
        self._pending += self._decoder.decode(b"", final=True)
        residue, self._pending = self._pending, ""
        if not residue.strip():
            return None
        return residue[:-1] if residue.endswith("\r") else residue


@dataclass
class RelaySummary:
    """What happened during one relayed stream; used for metrics only."""
    deltas: List[str] = field(default_factory=list)
    skipped_frames: int = 0
    terminated: Optional[str] = None  # "done" or "eof"

    @property
    def full_text(self) -> str:
        return "".join(self.deltas)

    @property
    def delta_count(self) -> int:
        return len(self.deltas)


EventSink = Callable[[RelayEvent], Awaitable[None]]


class StreamRelay:
    """
    One relay per upstream stream; not reusable.

    Example:
        >>> relay = StreamRelay()
        >>> async for event in relay.events(response.aiter_bytes()):
        ...     await send(encode_sse(event))
        >>> relay.summary.full_text
    """

    def __init__(self):
        self.state = RelayState.AWAITING_FRAME
        self.summary = RelaySummary()

    def process_line(self, line: str) -> Optional[RelayEvent]:
        """Advance the state machine by one complete line."""
        if self.state is RelayState.TERMINATED:
            return None

        if not line.strip() or not line.startswith(DATA_PREFIX):
            return None

        self.state = RelayState.PARSING_PAYLOAD
        payload = line[len(DATA_PREFIX):]
        if payload.startswith(" "):
            payload = payload[1:]

        if payload.strip() == DONE_MARKER:
            return self._terminate("done")

        try:
            parsed = json.loads(payload)
        except ValueError:
            # Providers occasionally send partial or garbage keep-alive frames
            logger.debug(f"Skipping malformed frame: {payload[:80]}")
            self.summary.skipped_frames += 1
            self.state = RelayState.AWAITING_FRAME
            return None

        content = extract_delta(parsed)
        if not content:
            self.state = RelayState.AWAITING_FRAME
            return None

        self.state = RelayState.EMITTING
        self.summary.deltas.append(content)
        event = RelayEvent.delta(content)
        self.state = RelayState.AWAITING_FRAME
        return event

    def _terminate(self, reason: str) -> RelayEvent:
        self.state = RelayState.TERMINATED
        self.summary.terminated = reason
        return RelayEvent.done()

    async def events(self, chunks: AsyncIterable[Union[bytes, str]]) -> AsyncIterator[RelayEvent]:
        """
        Relay ``chunks`` as events.

        Stops reading at the terminator frame and closes the chunk source
        (if it can be closed) however iteration ends.
        """
        buffer = LineBuffer()
        try:
            async for chunk in chunks:
                for line in buffer.feed(chunk):
                    event = self.process_line(line)
                    if event is not None:
                        yield event
                    if self.state is RelayState.TERMINATED:
                        return

            residue = buffer.flush()
            if residue is not None:
                event = self.process_line(residue)
                if event is not None:
                    yield event

            if self.state is not RelayState.TERMINATED:
                yield self._terminate("eof")
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

    async def relay(self, chunks: AsyncIterable[Union[bytes, str]], sink: EventSink) -> RelaySummary:
        """Drive ``events`` into ``sink`` and return the summary."""
        async for event in self.events(chunks):
            await sink(event)
        return self.summary

"""
Context injection: turns knowledge search results into a single system
message placed ahead of the conversation.
"""

from typing import Dict, List, Optional, Sequence

from ..vector.types import ScoredResult

Message = Dict[str, str]

KNOWLEDGE_PREAMBLE = (
    "You are a helpful AI assistant with access to a knowledge base. "
    "Use the following relevant information to help answer the user's question. "
    "If the information is not relevant, you can provide a general response."
)


def retrieval_query(conversation: Sequence[Message]) -> Optional[str]:
    """Content of the last user turn, the one that triggers retrieval."""
    for message in reversed(conversation):
        if message.get("role") == "user":
            return message.get("content")
    return None


def format_results(results: Sequence[ScoredResult]) -> str:
    """
    Render results as labelled, score-annotated blocks separated by a blank line:

        [Knowledge 1] (relevance: 0.87)
        <text>
    """
    return "\n\n".join(
        f"[Knowledge {i}] (relevance: {result.score:.2f})\n{result.text}"
        for i, result in enumerate(results, start=1)
    )


def build_context_message(results: Sequence[ScoredResult], preamble: str = KNOWLEDGE_PREAMBLE) -> Message:
    return {"role": "system", "content": f"{preamble}\n\n{format_results(results)}"}


def inject(
    conversation: Sequence[Message],
    results: Sequence[ScoredResult],
    preamble: str = KNOWLEDGE_PREAMBLE,
) -> List[Message]:
    """
    Prepend one knowledge system message to a copy of ``conversation``.

    With no results the conversation comes back as-is. The input sequence
    is never mutated and its messages keep their order.
    """
    if not results:
        return conversation
    return [build_context_message(results, preamble), *conversation]

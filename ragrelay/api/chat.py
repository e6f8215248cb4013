"""
Chat endpoint: retrieval-augmented completion, streamed as Server-Sent
Events by default.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from util.logging import logger

from ..core.errors import ConfigurationError, UpstreamError
from .schemas import ChatRequest, ErrorResponse, error_response

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@router.post("/chat", responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
async def chat_endpoint(req: ChatRequest, request: Request):
    """
    Send a conversation to the model.

    With ``stream`` (the default) the answer arrives as ``data: {"content": ...}``
    frames followed by ``data: [DONE]``; otherwise the provider's JSON
    response is returned as-is.
    """
    if not req.messages:
        return error_response(400, "Messages array is required")

    service = request.app.state.chat_service
    messages = [m.model_dump() for m in req.messages]

    try:
        chat = await service.prepare(messages, model=req.model, stream=req.stream)
    except ConfigurationError as e:
        logger.error(str(e))
        return error_response(500, str(e))

    headers = {}
    if chat.degraded:
        headers["X-Knowledge-Status"] = "degraded"

    if req.stream:
        return StreamingResponse(
            service.stream(chat),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, **headers},
        )

    try:
        data = await service.complete(chat)
    except UpstreamError as e:
        status_code = e.status_code or 502
        return error_response(
            status_code,
            "AI API error",
            details=e.body if e.body is not None else str(e),
            headers=headers,
        )

    return JSONResponse(content=data, headers=headers)

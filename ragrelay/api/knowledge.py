"""
Knowledge endpoints: document ingestion and a diagnostic search.
"""

from fastapi import APIRouter, Request

from util.logging import audit_event, logger

from .schemas import (
    ErrorResponse,
    IngestRequest,
    IngestResponse,
    KnowledgeResult,
    KnowledgeSearchRequest,
    KnowledgeSearchResponse,
    error_response,
)

router = APIRouter()


@router.post(
    "/ingest",
    response_model=IngestResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def ingest_endpoint(req: IngestRequest, request: Request):
    """Embed and store documents in the knowledge base."""
    if not req.documents:
        return error_response(
            400,
            "Invalid request",
            message="Documents array is required and must not be empty",
        )

    knowledge = request.app.state.knowledge
    documents = [d.model_dump() for d in req.documents]

    try:
        await knowledge.ensure_collection()
        count = await knowledge.ingest(documents)
    except Exception as e:
        logger.error(f"Document ingestion error: {e}")
        return error_response(500, "Ingestion failed", message=str(e) or "Unknown error")

    audit_event(
        "knowledge.ingest",
        {"collection": knowledge.collection, "count": count},
        {"ids": [d["id"] for d in documents if d.get("id")]},
    )
    return IngestResponse(
        success=True,
        message=f"Successfully ingested {count} documents",
        count=count,
    )


@router.post("/knowledge/search", response_model=KnowledgeSearchResponse)
async def knowledge_search_endpoint(req: KnowledgeSearchRequest, request: Request):
    """Run a knowledge search directly (debugging retrieval quality)."""
    outcome = await request.app.state.knowledge.search_detailed(req.query, req.limit)
    return KnowledgeSearchResponse(
        results=[
            KnowledgeResult(text=r.text, score=r.score, metadata=r.metadata)
            for r in outcome.results
        ],
        degraded=outcome.degraded,
    )

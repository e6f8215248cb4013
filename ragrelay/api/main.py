"""
FastAPI application: knowledge-augmented chat relay.

Components are built once per process in the lifespan handler from
``ragrelay.core.config`` and kept on ``app.state``; tests hand in their own
through ``create_app``.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from util.logging import logger

from ..core import config
from ..core.chat_service import ChatService
from ..core.knowledge import KnowledgeService
from .chat import router as chat_router
from .knowledge import router as knowledge_router
from .schemas import HealthResponse, error_response


def _build_components(state) -> None:
    """Fill in whatever the caller did not provide."""
    if getattr(state, "telemetry", None) is None:
        state.telemetry = config.get_telemetry()

    if getattr(state, "provider_client", None) is None:
        state.provider_client = config.get_provider_client()

    if getattr(state, "knowledge", None) is None:
        # Collection dimension follows the embedder
        state.knowledge = KnowledgeService(
            embedding_provider=config.get_embedding_provider(state.provider_client),
            vector_store=config.get_vector_store(),
            collection=config.COLLECTION_NAME,
            distance=config.VECTOR_DISTANCE,
            telemetry=state.telemetry,
        )

    if getattr(state, "chat_service", None) is None:
        state.chat_service = ChatService(
            client=state.provider_client,
            knowledge=state.knowledge,
            telemetry=state.telemetry,
            default_model=config.CHAT_MODEL,
            top_k=config.RAG_TOP_K,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    for issue in config.validate_config():
        logger.warning(f"Config: {issue}")

    _build_components(app.state)
    logger.info(f"{config.SERVICE_NAME} {config.VERSION} started (vector store: {config.VECTOR_PROVIDER})")

    try:
        yield
    finally:
        await app.state.knowledge.vector_store.close()
        aclose = getattr(app.state.provider_client, "aclose", None)
        if aclose is not None:
            await aclose()
        await app.state.telemetry.flush()
        logger.info(f"{config.SERVICE_NAME} stopped")


def create_app(
    chat_service=None,
    knowledge=None,
    telemetry=None,
    provider_client=None,
) -> FastAPI:
    """
    Build the application.

    Anything passed in is used as-is; the rest is built from configuration
    when the application starts.
    """
    app = FastAPI(
        title="RAG Relay API",
        version=config.VERSION,
        description="Knowledge-augmented streaming chat relay",
        docs_url="/docs" if config.debug_enabled() else None,
        redoc_url="/redoc" if config.debug_enabled() else None,
        lifespan=lifespan,
    )

    app.state.chat_service = chat_service
    app.state.knowledge = knowledge
    app.state.telemetry = telemetry
    app.state.provider_client = provider_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"message": f"{config.SERVICE_NAME} is running", "version": config.VERSION}

    @app.get("/health", response_model=HealthResponse)
    async def health_check_endpoint(request: Request):
        """Check system health."""
        knowledge_service = request.app.state.knowledge
        store_healthy = await knowledge_service.health_check() if knowledge_service is not None else False

        return HealthResponse(
            status="healthy" if store_healthy else "degraded",
            timestamp=datetime.now(timezone.utc).isoformat(),
            service=config.SERVICE_NAME,
            version=config.VERSION,
            vector_store_healthy=store_healthy,
        )

    app.include_router(chat_router, prefix="/api", tags=["chat"])
    app.include_router(knowledge_router, prefix="/api", tags=["knowledge"])

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())[1:]) or 'body'}: {err.get('msg')}"
            for err in errors
        )
        return error_response(400, "Invalid request", message=message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions."""
        logging.error(f"Unhandled exception: {exc}")
        telemetry_sink = request.app.state.telemetry
        if telemetry_sink is not None:
            telemetry_sink.emit_exception(exc, {"operation": "UnhandledException", "path": request.url.path})

        return error_response(
            500,
            "Internal server error",
            debug=str(exc) if config.debug_enabled() else None,
        )

    return app


app = create_app()

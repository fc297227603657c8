"""
Feedback Triager - Main Application
===================================

Feedback aggregation and triage service.

Collects feedback from community and support channels, classifies it with
an LLM, indexes it for semantic search and routes urgent items to the
owning team.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, classification normalizing, workflow, aggregation
- Infrastructure: Database, LLM, vector store, Slack
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

# Configuration and Core
from src.config import settings
from src.core import ApplicationException

# Infrastructure
from src.infrastructure.database import init_database, close_database, create_tables, get_engine

# Feedback module
from src.feedback.application import ClassificationService, SimilarityIndexService
from src.feedback.infrastructure import build_llm_adapter, build_vector_adapter, create_notifier
from src.feedback.interfaces import feedback_router

# Shared
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    MetricsMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)
from src.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Initialize LLM client and vector store
    4. Build classifier, similarity index and notifier

    SHUTDOWN:
    1. Close Slack client
    2. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Feedback Triager", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # If the database is not available the server still starts, but
    # database-dependent endpoints will fail
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Initializing LLM client")
    llm_client = build_llm_adapter()
    if llm_client is None:
        logger.warning("No LLM configured - classification falls back to defaults, search disabled")

    logger.info("Initializing vector store", extra={"backend": settings.vector_backend})
    vector_index = build_vector_adapter()
    try:
        await vector_index.initialize()
    except Exception as e:
        logger.warning(f"Vector store not available: {e}")
        vector_index = None

    notifier = create_notifier()

    # Store services in app state for dependency injection
    app.state.llm_client = llm_client
    app.state.vector_index = vector_index
    app.state.classifier = ClassificationService(
        llm_client,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens
    )
    app.state.similarity_index = SimilarityIndexService(
        llm_client,
        vector_index,
        min_score=settings.min_similarity_threshold
    )
    app.state.notifier = notifier

    logger.info("Feedback Triager started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Feedback Triager")

    await notifier.close()
    await close_database()

    logger.info("Feedback Triager shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Feedback Triager API",
    description="""
    ## Feedback aggregation and triage

    - `POST /feedback/ingest` - Deduplicate, classify, store and index feedback
    - `GET /feedback/search?q=` - Semantic search over stored feedback
    - `GET /feedback/insights` - Per-category rollups, most pressing first
    - `GET /feedback/stats` - Dashboard totals
    - `GET /feedback/category/{category}` - Drill into one category
    - `POST /feedback/{id}/action` - acknowledge / resolve / reopen / add_note
    - `POST /feedback/{id}/escalate` - Escalate to a team and notify Slack
    - `POST /feedback/bulk` - Acknowledge or resolve a whole category
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(feedback_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "llm_client": "available",
                        "vector_store": "available (29 entries)",
                        "slack": "configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports each dependency separately; the service is ``degraded`` rather
    than down when only enrichment dependencies are missing.
    """
    state = request.app.state
    checks = {
        "database": "connected",
        "llm_client": "available" if getattr(state, "llm_client", None) else "not_configured",
        "vector_store": "not_configured",
        "slack": "not_configured"
    }

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = f"error: {str(e)}"

    vector_index = getattr(state, "vector_index", None)
    if vector_index is not None:
        try:
            checks["vector_store"] = f"available ({await vector_index.count()} entries)"
        except Exception as e:
            checks["vector_store"] = f"error: {str(e)}"

    notifier = getattr(state, "notifier", None)
    if notifier is not None and notifier.is_configured:
        checks["slack"] = "configured"

    return {
        "status": "healthy" if checks["database"] == "connected" else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Feedback Triager",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "feedback": {
                "prefix": "/feedback",
                "endpoints": [
                    "POST /feedback/ingest - Ingest feedback batch (sample set if empty)",
                    "GET /feedback/search?q= - Semantic search",
                    "GET /feedback/insights - Category insights",
                    "GET /feedback/stats - Dashboard totals",
                    "GET /feedback/category/{category} - Category drill-down",
                    "GET /feedback/{id} - Get one record",
                    "POST /feedback/{id}/action - Triage action",
                    "POST /feedback/{id}/escalate - Escalate to a team",
                    "POST /feedback/bulk - Bulk action on a category",
                    "POST /feedback/clear - Delete all records"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )

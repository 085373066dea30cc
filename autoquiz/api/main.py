"""
FastAPI application for the Auto-Create quiz pipeline.

Endpoints:
- POST /api/auto-create/process-content
- GET  /api/auto-create/usage-status
- GET  /api/auto-create/usage-stats
- GET  /api/auto-create/ai-health
- GET  /api/health
"""

# Load .env BEFORE any application imports that read os.environ
from dotenv import load_dotenv
load_dotenv()

import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autoquiz import __version__
from autoquiz.api.deps import get_pipeline
from autoquiz.api.routes import auto_create
from autoquiz.config import get_settings
from autoquiz.config.logging_config import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and build the pipeline on startup."""
    configure_logging(get_settings().log_level)
    pipeline = get_pipeline()
    pipeline.guard.prune_stale()
    logger.info("api_started", providers=[p["name"] for p in pipeline.generator.provider_status()])
    yield


app = FastAPI(
    title="Auto-Create Quiz API",
    description="Generate multiple-choice quizzes from documents, links and topics",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auto_create.router, prefix="/api", tags=["Auto-Create"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# =============================================================================
# Run with: python -m autoquiz.api.main
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8100))
    uvicorn.run(
        "autoquiz.api.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )

"""
StudyHub backend - FastAPI Application Entry Point.

Feature-based modular architecture:
  Each feature in studyhub/features/ has its own router, service, and tools.
  The tool registry is built once at startup and shared through app.state.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyhub.config import get_settings
from studyhub.features.agent.catalog import build_registry

# ── Feature Routers ──────────────────────────────────────
from studyhub.features.agent.router import router as agent_router
from studyhub.features.plugins.router import router as plugins_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup & shutdown."""
    settings = get_settings()
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} starting...")
    logger.info(f"LLM Provider: {settings.LLM_PROVIDER} ({settings.LLM_MODEL})")
    if getattr(app.state, "tool_registry", None) is None:
        app.state.tool_registry = build_registry()
    yield
    logger.info("Shutting down...")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Study platform backend: AI agent tools and plugin sessions",
        lifespan=lifespan,
    )
    app.state.tool_registry = None
    app.state.agent_graph = None

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Register Feature Routers ─────────────────────────
    app.include_router(agent_router, prefix="/api/agent", tags=["Agent"])
    app.include_router(plugins_router, prefix="/api/plugins", tags=["Plugins"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()

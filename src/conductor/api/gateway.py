"""
API Gateway -- FastAPI application factory.

Creates the FastAPI app with all routes, middleware and shared state. Run it
with uvicorn's factory mode:

    uvicorn conductor.api.gateway:create_app --factory --host 0.0.0.0 --port 8000

or through the CLI: `conductor serve`.

Shared state (request.app.state):
  config        -- ConductorConfig
  store         -- persistence gateway (SQLiteStore by default)
  registry      -- AgentRegistry, agents built lazily on first use
  orchestrator  -- Orchestrator wired to the two above

Security:
  - CORS restricted to configured origins (default: localhost only)
  - Production auth check on startup
  - Rate limiting via route dependencies
  - All external input validated at the boundary

Keep this file under 200 lines. Route logic lives in routes/.
"""

import logging
import os
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..agents.registry import AgentRegistry
from ..config import ConductorConfig, load_config
from ..memory.store import PersistenceGateway, SQLiteStore
from ..orchestration.conductor import Orchestrator
from .middleware.auth import check_production_auth
from .routes import chat, conversations, health, preferences

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://localhost:8080",
]


def _get_cors_origins() -> list[str]:
    """Load CORS origins from environment or use safe defaults."""
    origins_env = os.environ.get("CORS_ORIGINS", "")
    if origins_env.strip():
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    return DEFAULT_CORS_ORIGINS


def create_app(
    config: ConductorConfig | None = None,
    store: PersistenceGateway | None = None,
    registry: AgentRegistry | None = None,
) -> FastAPI:
    """
    Application factory -- creates and configures the FastAPI app.

    Args:
        config: Runtime settings (loaded from the environment if None).
        store: Persistence gateway (SQLiteStore at config.db_path if None).
        registry: Agent registry (provider-backed registry if None).
    """
    check_production_auth()

    config = config or load_config()
    store = store or SQLiteStore(config.db_path)
    registry = registry or AgentRegistry(config)

    application = FastAPI(
        title="Conductor API",
        description="Multi-agent review chat with live streaming",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    application.state.config = config
    application.state.store = store
    application.state.registry = registry
    application.state.orchestrator = Orchestrator(store, registry, config)
    application.state.start_time = time.time()

    application.include_router(health.router, prefix="/api/v1", tags=["Health"])
    application.include_router(chat.router, prefix="/api/v1", tags=["Chat"])
    application.include_router(
        conversations.router, prefix="/api/v1", tags=["Conversations"]
    )
    application.include_router(
        preferences.router, prefix="/api/v1", tags=["Preferences"]
    )

    logger.info(f"[Gateway] API gateway initialized (db={config.db_path})")
    return application

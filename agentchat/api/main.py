"""agentchat FastAPI Server.

Clean FastAPI application that mounts:
- /api/chat/stream - Streaming chat turns (Server-Sent Events)
- /api/agent       - Default agent metadata
- /api/agents      - Agent CRUD
- /api/health      - Authenticated health check
- /health          - Liveness probe (no auth)

Architecture:
```
main.py (FastAPI app)
    ├── auth.py          - Bearer token / scope dependency
    ├── dependencies.py  - app.state accessors, problem responses
    └── routers/
        ├── chat.py      - POST /chat/stream
        └── agents.py    - Agent metadata and CRUD
```
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from agentchat import __version__
from agentchat.api.auth import Principal, TokenValidator, require_chat_scope
from agentchat.api.routers.agents import router as agents_router
from agentchat.api.routers.chat import router as chat_router
from agentchat.services import create_agent_service
from agentchat.services.agent_service import AgentService
from agentchat.settings import Settings, settings as default_settings

LOCALHOST_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    if getattr(app.state, "agent_service", None) is None:
        app.state.agent_service = create_agent_service(app.state.settings)

    logger.info(
        f"agentchat API started (environment={app.state.settings.environment}, "
        f"provider={app.state.agent_service.provider_name})"
    )

    yield

    logger.info("agentchat API stopped")


def create_app(
    settings: Settings | None = None,
    agent_service: AgentService | None = None,
    token_validator: TokenValidator | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    ``agent_service`` is built from settings at startup when not given.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="agentchat API",
        version=__version__,
        description="Streaming chat front end for hosted AI agents",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.agent_service = agent_service
    app.state.token_validator = token_validator

    # CORS middleware: any localhost port in development
    if settings.is_development:
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=LOCALHOST_ORIGIN_REGEX,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(chat_router, prefix="/api")
    app.include_router(agents_router, prefix="/api")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/api/health")
    async def api_health(principal: Principal = Depends(require_chat_scope)) -> dict[str, Any]:
        """Authenticated health check."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "authenticated": True,
            "user": {"id": principal.id, "name": principal.name},
        }

    @app.get("/")
    async def root() -> dict[str, Any]:
        """API information endpoint."""
        return {
            "name": "agentchat API",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "chat": "/api/chat/stream",
                "agent": "/api/agent",
                "agents": "/api/agents",
                "docs": "/docs",
            },
        }

    return app

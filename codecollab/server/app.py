"""
codecollab FastAPI entrypoint.

Provides a ``create_app`` factory that configures logging, CORS, error
handlers, the room registry / sync handler pair, and the collaboration
routes (REST plus the WebSocket room protocol).
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from codecollab import __version__
from codecollab.agents.gateway import AgentGateway
from codecollab.collab import RoomRegistry
from codecollab.config.settings import Settings, load_settings
from codecollab.logging_config import init_logging
from codecollab.server.core.collab import attach_handler, build_handler
from codecollab.server.core.errors import register_exception_handlers
from codecollab.server.core.middleware_ex import RequestIDMiddleware, TimingMiddleware
from codecollab.server.modules.collab_api import collab_ws
from codecollab.server.modules.collab_api import router as collab_router

LOGGER = logging.getLogger(__name__)


def _resolve_cors_origins(
    settings: Settings, allowed_origins: Optional[Sequence[str]]
) -> list[str]:
    origins = list(allowed_origins) if allowed_origins is not None else [settings.frontend_url]
    extra = os.getenv("CODECOLLAB_CORS_ORIGINS", "")
    if extra:
        origins.extend(origin.strip() for origin in extra.split(",") if origin.strip())
    return list(dict.fromkeys(origins))


def create_app(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[RoomRegistry] = None,
    gateway: Optional[AgentGateway] = None,
    allowed_origins: Optional[Sequence[str]] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Application factory used by both the CLI and ASGI servers."""
    settings = settings or load_settings()
    log_path = None
    if configure_logging:
        log_path = init_logging(settings.log_dir, level=settings.log_level)

    app = FastAPI(title="codecollab", version=__version__)
    app.state.settings = settings
    app.state.log_path = log_path

    origins = _resolve_cors_origins(settings, allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)

    handler = build_handler(settings, registry=registry, gateway=gateway)
    attach_handler(app, handler)

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        await handler.aclose()
        close = getattr(handler.gateway, "aclose", None)
        if close is not None:
            await close()

    app.include_router(collab_router)
    app.add_api_websocket_route("/ws", collab_ws)

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def root() -> str:
        return "Backend server is running!"

    @app.get("/health", tags=["System"], summary="Simple health probe")
    async def core_health():
        return {"status": "ok"}

    @app.get("/healthz", include_in_schema=False)
    async def _healthz():
        return {"ok": True}

    LOGGER.info(
        "FastAPI application ready",
        extra={
            "origins": origins,
            "agent_url": settings.agent_url,
            "routes": len(app.routes),
            "version": __version__,
        },
    )
    return app


if os.getenv("CODECOLLAB_SKIP_APP_AUTOLOAD", "").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}:
    app: FastAPI | None = None
else:
    app = create_app()

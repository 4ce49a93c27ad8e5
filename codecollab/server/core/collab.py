from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, WebSocket

from codecollab.agents.gateway import AgentGateway
from codecollab.collab import RoomRegistry, SyncProtocolHandler
from codecollab.config.settings import Settings

LOGGER = logging.getLogger(__name__)


def build_handler(
    settings: Settings,
    *,
    registry: Optional[RoomRegistry] = None,
    gateway: Optional[AgentGateway] = None,
) -> SyncProtocolHandler:
    registry = registry if registry is not None else RoomRegistry()
    gateway = gateway if gateway is not None else AgentGateway.from_settings(settings)
    LOGGER.debug("Sync handler wired to agent service %s", settings.agent_url)
    return SyncProtocolHandler(registry, gateway)


def attach_handler(app: FastAPI, handler: SyncProtocolHandler) -> None:
    app.state.sync_handler = handler
    app.state.room_registry = handler.registry


def handler_from_request(request: Request) -> SyncProtocolHandler:
    return request.app.state.sync_handler


def handler_from_websocket(websocket: WebSocket) -> SyncProtocolHandler:
    return websocket.app.state.sync_handler


__all__ = [
    "attach_handler",
    "build_handler",
    "handler_from_request",
    "handler_from_websocket",
]

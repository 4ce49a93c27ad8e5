from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from codecollab.logging_config import reset_request_id, set_request_id

_log = logging.getLogger("codecollab.request")

# Polled by load balancers and the frontend; kept out of the info stream.
QUIET_PATHS = frozenset({"/", "/health", "/healthz", "/api/collab/health"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every HTTP request with an id that log records and error bodies share."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = (request.headers.get(self.header_name) or "").strip()
        rid = incoming[:128] or uuid.uuid4().hex
        request.state.request_id = rid
        token = set_request_id(rid)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[self.header_name] = rid
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, header_name: str = "X-Process-Time"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        response.headers[self.header_name] = f"{elapsed:.6f}s"

        path = request.url.path
        room = request.path_params.get("room_key")
        level = logging.DEBUG if path in QUIET_PATHS else logging.INFO
        _log.log(
            level,
            "http_request",
            extra={
                "http": {
                    "path": path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": round(elapsed * 1000, 3),
                },
                "room": room,
            },
        )
        return response


__all__ = ["QUIET_PATHS", "RequestIDMiddleware", "TimingMiddleware"]

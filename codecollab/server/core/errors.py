from __future__ import annotations

import logging
import traceback
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from codecollab.agents.gateway import AgentError
from codecollab.collab.errors import NodeNotFound, StructuralError
from codecollab.logging_config import reset_request_id, set_request_id

_log = logging.getLogger("codecollab.errors")


def _request_id(request: Request) -> Optional[str]:
    state_rid = getattr(request.state, "request_id", None)
    return state_rid or request.headers.get("X-Request-ID") or None


def _error_response(
    request: Request,
    *,
    status: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    rid = _request_id(request)
    body = {"ok": False, "code": code, "message": message}
    if details is not None:
        body["details"] = details
    if rid:
        body["request_id"] = rid

    response = JSONResponse(body, status_code=status)
    if rid:
        response.headers["X-Request-ID"] = rid
    return response


def register_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def _http_exc(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        return _error_response(
            request,
            status=exc.status_code,
            code=str(detail) if isinstance(detail, str) else f"http_{exc.status_code}",
            message=str(detail) if detail else "Request failed",
            details=detail if isinstance(detail, (dict, list)) else None,
        )

    @app.exception_handler(RequestValidationError)
    async def _val_exc(request: Request, exc: RequestValidationError):
        _log.debug("validation error: %s", exc)
        return _error_response(
            request,
            status=422,
            code="validation_error",
            message="Request validation failed",
            details=exc.errors(),
        )

    @app.exception_handler(StructuralError)
    async def _structural_exc(request: Request, exc: StructuralError):
        return _error_response(
            request,
            status=404 if isinstance(exc, NodeNotFound) else 400,
            code=exc.code,
            message=exc.message,
            details={"path": exc.path} if exc.path else None,
        )

    @app.exception_handler(AgentError)
    async def _agent_exc(request: Request, exc: AgentError):
        return _error_response(
            request,
            status=502,
            code="agent_error",
            message=exc.message,
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        rid = _request_id(request)
        token = set_request_id(rid) if rid else None
        err_id = uuid.uuid4().hex
        try:
            _log.error(
                "Unhandled exception [%s]: %s",
                err_id,
                "".join(traceback.format_exception(exc)),
            )
            return _error_response(
                request,
                status=500,
                code="internal_error",
                message="Internal server error",
                details={"error_id": err_id},
            )
        finally:
            if token is not None:
                reset_request_id(token)

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from codecollab.agents.gateway import AgentError, AgentGateway
from codecollab.config.settings import Settings


def _run(handler: Callable[[httpx.Request], httpx.Response], call: Callable[[AgentGateway], Any]) -> Any:
    async def _inner() -> Any:
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as client:
            gateway = AgentGateway(base_url="http://agents.test/")
            gateway.client = client
            return await call(gateway)

    return asyncio.run(_inner())


def test_analyze_posts_invoke_envelope():
    seen: List[Dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/v1/invoke"
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"issues": ["unused variable"]})

    result = _run(handler, lambda gw: gw.analyze("src/app.js", "let x;"))

    assert result == {"issues": ["unused variable"]}
    assert seen == [
        {"agent": "code_guardian", "payload": {"filePath": "src/app.js", "code": "let x;"}}
    ]


def test_anchor_returns_transaction_id():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["agent"] == "onchain_scribe"
        assert body["payload"] == {"walletAddress": "0xA", "codeHash": "abc"}
        return httpx.Response(200, json={"transactionId": "tx-42"})

    result = _run(handler, lambda gw: gw.anchor("0xA", "abc"))
    assert result["transactionId"] == "tx-42"


def test_anchor_without_transaction_id_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "queued"})

    with pytest.raises(AgentError) as excinfo:
        _run(handler, lambda gw: gw.anchor("0xA", "abc"))
    assert excinfo.value.capability == "anchor"


def test_ask_targets_task_master():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body == {"agent": "task_master", "payload": {"question": "next?"}}
        return httpx.Response(200, json={"answer": "write tests"})

    assert _run(handler, lambda gw: gw.ask("next?")) == {"answer": "write tests"}


def test_http_error_status_is_normalised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "boom"})

    with pytest.raises(AgentError) as excinfo:
        _run(handler, lambda gw: gw.analyze("a.js", ""))
    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "Agent invocation failed for code_guardian."


def test_error_payload_is_normalised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "wallet rejected"})

    with pytest.raises(AgentError) as excinfo:
        _run(handler, lambda gw: gw.anchor("0xA", "abc"))
    assert excinfo.value.message == "wallet rejected"


def test_connection_failure_is_normalised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AgentError):
        _run(handler, lambda gw: gw.ask("hello"))


def test_non_json_body_is_normalised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(AgentError):
        _run(handler, lambda gw: gw.analyze("a.js", ""))


def test_non_object_body_is_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "a", "dict"])

    with pytest.raises(AgentError):
        _run(handler, lambda gw: gw.analyze("a.js", ""))


def test_unknown_capability_never_hits_network():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"Unexpected request {request.url}")

    with pytest.raises(AgentError) as excinfo:
        _run(handler, lambda gw: gw.invoke("deploy", {}))
    assert excinfo.value.capability == "deploy"


def test_health_reports_status():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        return httpx.Response(404)

    status = _run(handler, lambda gw: gw.health())
    assert status == {"ok": True, "base": "http://agents.test/", "status": 404}


def test_from_settings_copies_url_and_timeout():
    gateway = AgentGateway.from_settings(
        Settings(agent_url="http://agents:9000", agent_timeout=2.5)
    )
    assert gateway.base_url == "http://agents:9000"
    assert gateway.timeout == 2.5
    assert gateway._url("api/v1/invoke") == "http://agents:9000/api/v1/invoke"

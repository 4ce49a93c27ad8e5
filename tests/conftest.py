from __future__ import annotations

import asyncio
import itertools
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("CODECOLLAB_SKIP_APP_AUTOLOAD", "1")

from codecollab.agents.gateway import AgentError  # noqa: E402
from codecollab.collab import ClientSession, RoomRegistry, SyncProtocolHandler  # noqa: E402


class FakeWebSocket:
    """Records every frame sent to it as decoded JSON."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.closed = False

    async def send_text(self, message: str) -> None:
        if self.closed:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(message))

    def of_type(self, event: str) -> List[Dict[str, Any]]:
        return [frame for frame in self.sent if frame.get("type") == event]


class FakeGateway:
    """In-process stand-in for the agent service.

    ``fail`` holds capability names that should raise ``AgentError``;
    ``gate`` (an ``asyncio.Event``) holds every call until it is set.
    """

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.fail: set[str] = set()
        self.gate: Optional[asyncio.Event] = None
        self._tx = itertools.count(1)

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def analyze(self, file_path: str, code: str) -> Dict[str, Any]:
        self.calls.append(("analyze", file_path, code))
        await self._wait()
        if "analyze" in self.fail:
            raise AgentError("Agent invocation failed for code_guardian.")
        return {"feedback": f"{len(code)} chars reviewed", "issues": [], "length": len(code)}

    async def anchor(self, wallet_address: str, code_hash: str) -> Dict[str, Any]:
        self.calls.append(("anchor", wallet_address, code_hash))
        await self._wait()
        if "anchor" in self.fail:
            raise AgentError("Agent invocation failed for onchain_scribe.")
        return {"transactionId": f"tx-{next(self._tx)}"}

    async def ask(self, question: str) -> Dict[str, Any]:
        self.calls.append(("ask", question))
        await self._wait()
        if "ask" in self.fail:
            raise AgentError("Agent invocation failed for task_master.")
        return {"answer": f"echo: {question}"}

    async def aclose(self) -> None:
        return None


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture()
def handler(registry: RoomRegistry, fake_gateway: FakeGateway) -> SyncProtocolHandler:
    return SyncProtocolHandler(registry, fake_gateway)


@pytest.fixture()
def make_session():
    def _make(client_id: str) -> ClientSession:
        return ClientSession(client_id=client_id, websocket=FakeWebSocket())

    return _make

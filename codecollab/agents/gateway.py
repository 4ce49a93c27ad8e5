from __future__ import annotations

"""
Request/response bridge to the external agent service.

Every failure mode (connection errors, timeouts, non-2xx responses, bodies
that are not JSON objects, and explicit ``error`` payloads) is normalised to
``AgentError`` so callers only ever handle one exception type.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

LOGGER = logging.getLogger(__name__)

INVOKE_PATH = "/api/v1/invoke"

ANALYZE = "analyze"
ANCHOR = "anchor"
ASK = "ask"

CAPABILITY_AGENTS: Dict[str, str] = {
    ANALYZE: "code_guardian",
    ANCHOR: "onchain_scribe",
    ASK: "task_master",
}


class AgentError(Exception):
    """Raised for any failed agent invocation."""

    def __init__(
        self,
        message: str,
        *,
        capability: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.capability = capability
        self.status_code = status_code

    def as_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


@dataclass(slots=True)
class AgentGateway:
    base_url: str
    timeout: Optional[float] = None
    client: Optional[httpx.AsyncClient] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings: Any) -> "AgentGateway":
        return cls(base_url=settings.agent_url, timeout=settings.agent_timeout)

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return self.base_url.rstrip("/") + path

    async def _post(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        url = self._url(path)
        if self.client is not None:
            response = await self.client.post(url, json=body, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as session:
                response = await session.post(url, json=body)
        response.raise_for_status()
        return response

    async def invoke(self, capability: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        agent = CAPABILITY_AGENTS.get(capability)
        if agent is None:
            raise AgentError(f"Unknown agent capability: {capability}", capability=capability)
        LOGGER.info("Invoking agent '%s'", agent, extra={"capability": capability})
        try:
            response = await self._post(INVOKE_PATH, {"agent": agent, "payload": payload})
            data = response.json()
        except httpx.HTTPStatusError as exc:
            LOGGER.warning("Agent %s returned HTTP %s", agent, exc.response.status_code)
            raise AgentError(
                f"Agent invocation failed for {agent}.",
                capability=capability,
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("Error invoking agent %s: %s", agent, exc)
            raise AgentError(
                f"Agent invocation failed for {agent}.", capability=capability
            ) from exc

        if not isinstance(data, dict):
            raise AgentError(f"Agent {agent} returned an invalid response.", capability=capability)
        error = data.get("error")
        if error:
            LOGGER.warning("Agent %s reported an error: %s", agent, error)
            raise AgentError(str(error), capability=capability)
        return data

    async def analyze(self, file_path: str, code: str) -> Dict[str, Any]:
        return await self.invoke(ANALYZE, {"filePath": file_path, "code": code})

    async def anchor(self, wallet_address: str, code_hash: str) -> Dict[str, Any]:
        result = await self.invoke(
            ANCHOR, {"walletAddress": wallet_address, "codeHash": code_hash}
        )
        if not result.get("transactionId"):
            raise AgentError("Agent did not return a transaction id.", capability=ANCHOR)
        return result

    async def ask(self, question: str) -> Dict[str, Any]:
        return await self.invoke(ASK, {"question": question})

    async def health(self) -> Dict[str, Any]:
        """Best-effort reachability probe of the agent service root."""
        url = self._url("/")
        try:
            if self.client is not None:
                response = await self.client.get(url, timeout=self.timeout or 5.0)
            else:
                async with httpx.AsyncClient(timeout=self.timeout or 5.0) as session:
                    response = await session.get(url)
        except httpx.HTTPError as exc:
            return {"ok": False, "base": self.base_url, "error": str(exc)}
        return {
            "ok": response.status_code < 500,
            "base": self.base_url,
            "status": response.status_code,
        }

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None


__all__ = [
    "ANALYZE",
    "ANCHOR",
    "ASK",
    "CAPABILITY_AGENTS",
    "INVOKE_PATH",
    "AgentError",
    "AgentGateway",
]

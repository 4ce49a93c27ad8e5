"""Client for the external analysis / ledger / question-answering agent service."""

from __future__ import annotations

from .gateway import AgentError, AgentGateway

__all__ = ["AgentError", "AgentGateway"]

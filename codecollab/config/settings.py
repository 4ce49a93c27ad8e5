from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

CONFIG_CANDIDATES: Sequence[Path] = (Path("config/codecollab.json"), Path("codecollab.json"))

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_FRONTEND_URL = "http://localhost:3000"
DEFAULT_AGENT_URL = "http://localhost:8081"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"

ENV_HOST = "CODECOLLAB_HOST"
ENV_PORTS = ("PORT", "CODECOLLAB_PORT")
ENV_FRONTEND_URL = "FRONTEND_URL"
ENV_AGENT_URLS = ("AGENT_URL", "JULIA_AGENT_URL")
ENV_AGENT_TIMEOUT = "CODECOLLAB_AGENT_TIMEOUT"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_DIR = "LOG_DIR"


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    frontend_url: str = DEFAULT_FRONTEND_URL
    agent_url: str = DEFAULT_AGENT_URL
    agent_timeout: Optional[float] = None
    log_level: str = DEFAULT_LOG_LEVEL
    log_dir: str = DEFAULT_LOG_DIR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "frontend_url": self.frontend_url,
            "agent_url": self.agent_url,
            "agent_timeout": self.agent_timeout,
            "log_level": self.log_level,
            "log_dir": self.log_dir,
        }


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _coerce_port(value: Any) -> Optional[int]:
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    if not 0 < port < 65536:
        return None
    return port


def _coerce_timeout(value: Any) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in {"", "none", "off", "0"}:
        return None
    try:
        timeout = float(text)
    except ValueError:
        return None
    return timeout if timeout > 0 else None


def _apply_file(settings: Settings, payload: Mapping[str, Any]) -> Settings:
    server = payload.get("server")
    if isinstance(server, dict):
        host = server.get("host")
        if isinstance(host, str) and host:
            settings = replace(settings, host=host)
        port = _coerce_port(server.get("port"))
        if port is not None:
            settings = replace(settings, port=port)
        frontend = server.get("frontend_url")
        if isinstance(frontend, str) and frontend:
            settings = replace(settings, frontend_url=frontend)
        level = server.get("log_level")
        if isinstance(level, str) and level:
            settings = replace(settings, log_level=level)
        log_dir = server.get("log_dir")
        if isinstance(log_dir, str) and log_dir:
            settings = replace(settings, log_dir=log_dir)
    agent = payload.get("agent")
    if isinstance(agent, dict):
        base = agent.get("base_url")
        if isinstance(base, str) and base:
            settings = replace(settings, agent_url=base.rstrip("/"))
        if "timeout" in agent:
            settings = replace(settings, agent_timeout=_coerce_timeout(agent.get("timeout")))
    return settings


def _first_env(env: Mapping[str, str], names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value.strip()
    return None


def _apply_env(settings: Settings, env: Mapping[str, str]) -> Settings:
    host = _first_env(env, (ENV_HOST,))
    if host:
        settings = replace(settings, host=host)
    port = _coerce_port(_first_env(env, ENV_PORTS))
    if port is not None:
        settings = replace(settings, port=port)
    frontend = _first_env(env, (ENV_FRONTEND_URL,))
    if frontend:
        settings = replace(settings, frontend_url=frontend)
    agent = _first_env(env, ENV_AGENT_URLS)
    if agent:
        settings = replace(settings, agent_url=agent.rstrip("/"))
    if ENV_AGENT_TIMEOUT in env:
        settings = replace(settings, agent_timeout=_coerce_timeout(env.get(ENV_AGENT_TIMEOUT)))
    level = _first_env(env, (ENV_LOG_LEVEL,))
    if level:
        settings = replace(settings, log_level=level)
    log_dir = _first_env(env, (ENV_LOG_DIR,))
    if log_dir:
        settings = replace(settings, log_dir=log_dir)
    return settings


def load_settings(
    *,
    env: Optional[Mapping[str, str]] = None,
    candidates: Optional[Sequence[Path]] = None,
) -> Settings:
    """Defaults, then config files (later candidates win), then environment."""
    settings = Settings()
    for path in candidates if candidates is not None else CONFIG_CANDIDATES:
        settings = _apply_file(settings, _read_json(path))
    return _apply_env(settings, os.environ if env is None else env)


__all__ = ["CONFIG_CANDIDATES", "Settings", "load_settings"]

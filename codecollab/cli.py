from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from codecollab.agents.gateway import AgentGateway
from codecollab.collab import default_tree
from codecollab.collab.canonical import fingerprint as canonical_fingerprint
from codecollab.collab.nodes import children_from_dict
from codecollab.config.settings import load_settings
from codecollab.logging_config import init_logging

app = typer.Typer(add_completion=False, help="codecollab command line utilities.")
logger = logging.getLogger(__name__)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (defaults to settings)."),
    port: Optional[int] = typer.Option(None, help="Bind port (defaults to settings)."),
    reload: bool = typer.Option(False, help="Reload on code changes."),
) -> None:
    """Run the collaboration server under uvicorn."""
    import uvicorn

    settings = load_settings()
    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting codecollab backend on %s:%s", bind_host, bind_port)
    uvicorn.run(
        "codecollab.server.app:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def fingerprint(
    tree: Path = typer.Argument(..., exists=True, dir_okay=False, help="Snapshot JSON file."),
) -> None:
    """Print the canonical SHA-256 fingerprint of a project snapshot."""
    init_logging(level="WARNING")
    try:
        raw = json.loads(tree.read_text(encoding="utf-8"))
        children = children_from_dict(raw)
    except ValueError as exc:
        typer.echo(f"invalid snapshot: {exc}", err=True)
        raise typer.Exit(code=2)
    typer.echo(canonical_fingerprint(children))


@app.command("default-tree")
def show_default_tree() -> None:
    """Print the tree every new room starts from, with its fingerprint."""
    root = default_tree()
    snapshot = {name: child.as_dict() for name, child in root.children.items()}
    typer.echo(
        json.dumps(
            {"tree": snapshot, "hash": canonical_fingerprint(snapshot)},
            indent=2,
            ensure_ascii=False,
        )
    )


@app.command("check-agent")
def check_agent() -> None:
    """Probe the configured agent service."""
    init_logging(level="INFO")
    gateway = AgentGateway.from_settings(load_settings())
    status = asyncio.run(gateway.health())
    logger.info("Agent service health: %s", status.get("status", status))
    typer.echo(json.dumps(status, indent=2))
    raise typer.Exit(code=0 if status.get("ok") else 1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

"""CLI entrypoint that serves the thumbnail API with Flask's development server."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from drawing_previews.api import create_app
from drawing_previews.config import load_settings
from utils.logging import get_logger

LOGGER = get_logger(__name__)


def main(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", help="Port to listen on."),
    settings_path: Optional[Path] = typer.Option(
        None,
        "--settings",
        exists=True,
        dir_okay=False,
        help="Settings YAML to load instead of config/settings.yaml.",
    ),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable the Flask debugger and reloader."),
) -> None:
    """Serve the thumbnail endpoints."""

    settings = load_settings(settings_path)
    app = create_app(settings)

    LOGGER.info(
        "api_serve_start",
        extra={"host": host, "port": port, "storage_backend": settings.storage.backend, "debug": debug},
    )
    app.run(host=host, port=port, debug=debug)


def cli() -> None:
    """Console-script entrypoint."""

    typer.run(main)


if __name__ == "__main__":
    cli()


__all__ = ["cli", "main"]

"""Command line entry point for the wormhole bridge."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn
from typing_extensions import Annotated

from .core import (
    ConfigurationError,
    Settings,
    TransferCancelled,
    TransferError,
    TransferKind,
    TransferOrchestrator,
    load_settings,
)
from .core.events import TransferEvent
from .core.http_server import create_app

app = typer.Typer(
    name="wormhole-bridge",
    help="Drive magic-wormhole transfers and expose them to desktop frontends",
)


def _setup_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _load(ctx: typer.Context) -> Settings:
    try:
        return load_settings(ctx.obj["config"])
    except ConfigurationError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)


async def _print_event(event: TransferEvent) -> None:
    if event.type == "code-discovered":
        typer.echo(f"Wormhole code is: {event.code}")
    elif event.type == "progress":
        typer.echo(f"Transferring... {event.percent}%")
    elif event.type == "status":
        typer.echo(event.message, err=True)


async def _transfer(settings: Settings, kind: TransferKind, **kwargs):
    orchestrator = TransferOrchestrator(settings)
    session = await orchestrator.start(kind, on_event=_print_event, **kwargs)
    return await session.wait()


def _run_transfer(ctx: typer.Context, kind: TransferKind, **kwargs):
    settings = _load(ctx)
    try:
        return asyncio.run(_transfer(settings, kind, **kwargs))
    except KeyboardInterrupt:
        typer.echo("\nTransfer cancelled", err=True)
        raise typer.Exit(130)
    except TransferCancelled:
        typer.echo("Transfer cancelled", err=True)
        raise typer.Exit(130)
    except (TransferError, ValueError) as e:
        typer.echo(f"❌ Transfer failed: {e}", err=True)
        raise typer.Exit(1)


ConfigOption = Annotated[
    Optional[Path], typer.Option("--config", "-c", help="Path to YAML config file")
]


@app.callback()
def main(
    ctx: typer.Context,
    config: ConfigOption = None,
    log_level: Annotated[str, typer.Option("--log-level", help="Log level")] = "WARNING",
):
    """Shared options for every command."""
    _setup_logging(log_level)
    ctx.obj = {"config": config, "log_level": log_level}


@app.command()
def send(
    ctx: typer.Context,
    files: Annotated[List[Path], typer.Argument(help="Files to send")],
):
    """Send one or more files and print the wormhole code."""
    result = _run_transfer(ctx, TransferKind.SEND_FILES, files=files)
    typer.echo(f"✅ Files sent successfully! Code: {result.code}")


@app.command()
def receive(
    ctx: typer.Context,
    code: Annotated[str, typer.Argument(help="Wormhole code from the sender")],
    to: Annotated[Optional[Path], typer.Option("--to", "-t", help="Directory to save into")] = None,
):
    """Receive files into a directory (the downloads folder by default)."""
    result = _run_transfer(ctx, TransferKind.RECEIVE_FILES, code=code, save_location=to)
    typer.echo(f"✅ Files received successfully into {result.destination}")


@app.command("send-text")
def send_text(
    ctx: typer.Context,
    text: Annotated[str, typer.Argument(help="Text message to send")],
):
    """Send a text message."""
    result = _run_transfer(ctx, TransferKind.SEND_TEXT, text=text)
    typer.echo(f"✅ Text sent! Code: {result.code}")


@app.command("receive-text")
def receive_text(
    ctx: typer.Context,
    code: Annotated[str, typer.Argument(help="Wormhole code from the sender")],
):
    """Receive a text message and print it."""
    result = _run_transfer(ctx, TransferKind.RECEIVE_TEXT, code=code)
    typer.echo(result.text)


@app.command()
def check(ctx: typer.Context):
    """Check that the wormhole executable is present and runs."""
    settings = _load(ctx)
    orchestrator = TransferOrchestrator(settings)
    path = orchestrator.wormhole_path
    if asyncio.run(orchestrator.is_wormhole_available()):
        typer.echo(f"✅ Wormhole available at {path}")
    else:
        typer.echo(f"❌ Wormhole not available at {path}", err=True)
        raise typer.Exit(1)


@app.command("validate-config")
def validate_config(ctx: typer.Context):
    """Validate configuration without starting anything."""
    settings = _load(ctx)
    typer.echo("✅ Configuration is valid")
    typer.echo(f"Wormhole executable: {settings.resolve_wormhole_path()}")
    typer.echo(f"Downloads directory: {settings.downloads_dir}")
    typer.echo(f"Auto-confirm delay: {settings.confirm_delay}s")
    if settings.log_dir:
        typer.echo(f"Transfer logs: {settings.log_dir}")


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[Optional[str], typer.Option("--host", "-h", help="Host to bind to")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to bind to")] = None,
):
    """Run the HTTP/WebSocket bridge."""
    settings = _load(ctx)
    host = host or settings.host
    port = port or settings.port

    fastapi_app = create_app(settings)
    typer.echo(f"Starting Wormhole Bridge on {host}:{port}")
    typer.echo(f"Wormhole executable: {settings.resolve_wormhole_path()}")

    try:
        uvicorn.run(
            fastapi_app,
            host=host,
            port=port,
            log_level=ctx.obj["log_level"].lower(),
        )
    except KeyboardInterrupt:
        typer.echo("\nShutting down...")


if __name__ == "__main__":
    app()

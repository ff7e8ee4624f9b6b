"""CLI commands for corebridge.

Single entry point: ``serve`` runs the WebSocket adapter, ``stdio`` speaks
JSON Lines on stdin/stdout, ``methods`` lists what a client may call.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from corebridge import __logo__, __version__
from corebridge.cli.shared.network_utils import is_port_in_use, websocket_url
from corebridge.config.schema import Config
from corebridge.utils.logging import configure_logging

app = typer.Typer(
    name="corebridge",
    help=f"{__logo__} corebridge - JSON-RPC bridge for an async messaging engine",
    no_args_is_help=True,
)

console = Console()
# stdout belongs to the protocol stream in stdio mode.
err_console = Console(stderr=True)


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} corebridge v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """corebridge - JSON-RPC bridge."""
    pass


def _load(config_path: str | None) -> Config:
    from corebridge.config.loader import get_config as get_cached_config

    try:
        return get_cached_config(config_path=Path(config_path) if config_path else None)
    except ValueError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def version():
    """Show the corebridge version."""
    console.print(f"{__logo__} corebridge v{__version__}")


@app.command()
def serve(
    host: str = typer.Option(None, "--host", "-h", help="Bind host (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port for HTTP + WebSocket (default from config)"),
    path: str = typer.Option(None, "--path", help="WebSocket endpoint path (default from config)"),
    config_path: str = typer.Option(None, "--config", "-c", help="Config file (default ~/.corebridge/config.json)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Serve the bridge over WebSocket (one connection = one session)."""
    config = _load(config_path)
    if host:
        config.socket.host = host
    if port:
        config.socket.port = port
    if path:
        config.socket.path = path if path.startswith("/") else f"/{path}"
    host, port = config.socket.host, config.socket.port

    if is_port_in_use(host, port):
        console.print(
            f"[red]Port {port} is already in use.[/red] "
            f"Close the process using it, or pass [cyan]--port[/cyan] (current: {host}:{port})."
        )
        raise typer.Exit(1)

    level = "DEBUG" if verbose else config.logging.level
    log_path = configure_logging(level, "serve" if config.logging.file else None)

    import uvicorn

    from corebridge.transport.socket_adapter import create_app

    console.print(f"{__logo__} Starting corebridge on {host}:{port}...")
    if log_path is not None:
        console.print(f"[dim]Logs: {log_path}[/dim]")
    console.print(f"[green]✓[/green] WS {websocket_url(host, port, config.socket.path)} (GET /health)")

    uvicorn_config = uvicorn.Config(
        create_app(config=config),
        host=host,
        port=port,
        log_level="debug" if verbose else "info",
    )
    uvicorn.Server(uvicorn_config).run()


@app.command()
def stdio(
    config_path: str = typer.Option(None, "--config", "-c", help="Config file (default ~/.corebridge/config.json)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Speak JSON-RPC as JSON Lines on stdin/stdout with a single session."""
    config = _load(config_path)
    configure_logging("DEBUG" if verbose else config.logging.level, "stdio" if config.logging.file else None)

    from corebridge.bridge import CoreBridge
    from corebridge.engine.loader import load_engine
    from corebridge.transport.stdio_adapter import run_stdio

    async def _run() -> None:
        await run_stdio(CoreBridge(load_engine(config.engine), config))

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        err_console.print("[dim]Interrupted[/dim]")


@app.command()
def methods(
    config_path: str = typer.Option(None, "--config", "-c", help="Config file (default ~/.corebridge/config.json)"),
):
    """List callable methods of the configured engine plus bridge built-ins."""
    config = _load(config_path)

    from corebridge.engine.handle import CoreHandle
    from corebridge.engine.loader import load_engine
    from corebridge.rpc.registry import build_handler_registry

    registry = build_handler_registry(CoreHandle(load_engine(config.engine)))
    table = Table(title=f"Methods ({config.engine.factory})")
    table.add_column("Method", style="cyan")
    table.add_column("Source")
    table.add_column("Params")
    for name in registry.names():
        entry = registry.get(name)
        table.add_row(name, "bridge" if entry.builtin else "engine", entry.params_kind)
    console.print(table)


if __name__ == "__main__":
    app()

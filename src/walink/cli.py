"""CLI entry point for walink."""

from dataclasses import replace
from pathlib import Path

import click

from walink import __version__
from walink.config import load_config
from walink.logging import setup_logging


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level.")
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """walink - link WhatsApp Web and receive the session file."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config)
    ctx.obj["logger"] = setup_logging(
        ctx.obj["config"], level="DEBUG" if verbose else None
    )


@main.command()
@click.option("--host", default=None, help="Bind address (overrides config).")
@click.option("--port", "-p", type=int, default=None, help="Port (overrides config).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Serve the pairing page over HTTP."""
    import asyncio

    from walink.pairing.bridge import BridgeBackend
    from walink.server import PairingServer

    config = ctx.obj["config"]
    host = host or config.bind_address
    port = port or config.port

    async def _serve():
        backend = BridgeBackend(
            config.backend.url,
            connect_timeout_ms=config.backend.connect_timeout_ms,
        )
        server = PairingServer(backend, config)
        runner = await server.start(host, port)
        click.echo(f"Serving pairing page on http://{host}:{port}/")
        click.echo("Press Ctrl+C to stop")
        try:
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        click.echo("\nShutting down...")


@main.command()
@click.option(
    "--timeout",
    "-t",
    type=float,
    default=None,
    help="Seconds to wait for the scan (overrides pairing.deadline_seconds).",
)
@click.pass_context
def pair(ctx: click.Context, timeout: float | None) -> None:
    """Link a device from the terminal."""
    import asyncio

    from walink.pairing.bridge import BridgeBackend
    from walink.pairing.controller import PairingController
    from walink.pairing.responder import TerminalResponder

    config = ctx.obj["config"]
    if timeout is not None:
        config = replace(config, pairing=replace(config.pairing, deadline_seconds=timeout))

    async def _pair():
        backend = BridgeBackend(
            config.backend.url,
            connect_timeout_ms=config.backend.connect_timeout_ms,
        )
        controller = PairingController(backend, config)
        return await controller.run(TerminalResponder())

    result = asyncio.run(_pair())
    if not result.succeeded:
        raise SystemExit(1)


@main.command()
def version() -> None:
    """Show version."""
    click.echo(f"walink version {__version__}")


if __name__ == "__main__":
    main()

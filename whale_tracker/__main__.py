"""Command-line entry point for the whale tracker server."""

import dataclasses
from typing import Optional

import click
import uvicorn

from whale_tracker.app import create_application
from whale_tracker.config import SUPPORTED_CHAINS, AppConfig, get_server_config
from whale_tracker.runtime import TrackerRuntime


@click.command()
@click.option("--host", type=str, help="Host to bind to")
@click.option("--port", type=int, help="Port to listen on")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Log level",
)
@click.option(
    "--chains",
    type=str,
    help=f"Comma-separated chains to watch ({', '.join(SUPPORTED_CHAINS)})",
)
def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    log_level: Optional[str] = None,
    chains: Optional[str] = None,
) -> None:
    """Run the whale tracker server.

    Options override the matching environment settings.
    """
    overrides = {}
    if host:
        overrides["host"] = host
    if port:
        overrides["port"] = port
    if log_level:
        overrides["log_level"] = log_level.upper()
    if chains:
        selected = [c.strip().lower() for c in chains.split(",") if c.strip()]
        unknown = [c for c in selected if c not in SUPPORTED_CHAINS]
        if unknown:
            raise click.BadParameter(f"Unsupported chains: {', '.join(unknown)}", param_hint="--chains")
        overrides["chains"] = selected

    server_config = dataclasses.replace(get_server_config(), **overrides)
    runtime = TrackerRuntime(AppConfig(server=server_config))
    app = create_application(runtime=runtime, server_config=server_config)

    click.echo(f"Starting whale tracker on {server_config.bind_address} "
               f"(chains: {', '.join(runtime.detectors) or 'none'})")
    uvicorn.run(app, host=server_config.host, port=server_config.port,
                log_level=server_config.log_level.lower())


def main():
    """Run the whale tracker server."""
    run_server()


if __name__ == "__main__":
    main()

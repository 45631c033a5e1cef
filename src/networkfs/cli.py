"""Command-line interface for the NetworkFilesystem controller."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from safir.asyncio import run_with_asyncio
from safir.click import display_help
from safir.kubernetes import initialize_kubernetes
from safir.sentry import initialize_sentry
from structlog.stdlib import get_logger

from . import __version__
from .config import Config
from .constants import CONFIGURATION_PATH, ROOT_LOGGER
from .factory import Factory

__all__ = ["help", "main", "run"]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(
    package_name="networkfs-controller", message="%(version)s"
)
def main() -> None:
    """Command-line interface for the NetworkFilesystem controller."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic)


@main.command()
@click.option(
    "--config-file",
    "-c",
    type=click.Path(path_type=Path),
    default=CONFIGURATION_PATH,
    envvar="NETWORKFS_CONFIG_FILE",
    help="Path to the controller configuration file",
)
@run_with_asyncio
async def run(config_file: Path) -> None:
    """Watch endpoints and keep NetworkFilesystem status up to date."""
    if config_file.exists():
        config = Config.from_file(config_file)
    else:
        config = Config()
    config.configure_logging()
    initialize_sentry(release=__version__)
    logger = get_logger(ROOT_LOGGER)

    await initialize_kubernetes()
    async with Factory.standalone(config) as factory:
        handler = factory.create_endpoint_watch_handler()
        await handler.start()
        logger.info("NetworkFilesystem controller started")
        try:
            await asyncio.Event().wait()
        finally:
            await handler.stop()

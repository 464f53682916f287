# cli.py
import json
import logging
import os

import click
import uvicorn

from blob_gateway.config.settings import CONFIG_FILE_ENV_VAR, get_settings, load_settings
from blob_gateway.utils.logging import configure_logging

# Configure logging
logger = logging.getLogger(__name__)

CONFIG_OPTION = click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Config file in JSON format",
)


@click.group()
def cli():
    """CLI commands for the blob gateway"""
    pass


@cli.command()
@CONFIG_OPTION
@click.option("--host", default=None, help="Override the listen host")
@click.option("--port", type=int, default=None, help="Override the listen port")
def serve(config_file, host, port):
    """Run the HTTP server"""
    try:
        settings = load_settings(config_file)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"invalid configuration: {e}")
    configure_logging(settings)

    # worker processes rebuild their settings from the same file
    if config_file:
        os.environ[CONFIG_FILE_ENV_VAR] = os.path.abspath(config_file)
    get_settings.cache_clear()

    logger.info(f"starting {settings.app_name} with {settings.workers} worker(s)")
    uvicorn.run(
        "blob_gateway.main:create_app",
        factory=True,
        host=host or settings.listen_host,
        port=port or settings.listen_port,
        workers=settings.workers,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


@cli.command()
@CONFIG_OPTION
def show_config(config_file):
    """Show current configuration"""
    try:
        settings = load_settings(config_file)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"invalid configuration: {e}")

    click.echo("Current Configuration:")
    click.echo(json.dumps(settings.get_display_dict(), indent=2, default=str))


if __name__ == "__main__":
    cli()

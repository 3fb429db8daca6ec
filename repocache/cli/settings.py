"""CLI commands for reading and changing the repocache configuration file"""

import sys

import click

from repocache import config as cfg
from repocache.cli.utils.logging import logger


@click.group("config")
def settings():
    """Show or change repocache settings."""


@settings.command("show")
def show():
    """Print the configuration file location and its settings."""
    config = cfg.config
    click.echo(f"# {config.config_path}")
    for section in config.sections():
        click.echo(f"[{section}]")
        for key in config.options(section):
            click.echo(f"{key} = {config.get(section, key)}")


@settings.command("set")
@click.argument("section", type=click.Choice(sorted(cfg.default_cfg)))
@click.argument("key")
@click.argument("value")
def set_value(section: str, key: str, value: str):
    """Set KEY in SECTION to VALUE and save the configuration file.

    Example:

      repocache config set git retries 5
    """
    config = cfg.config
    if key not in cfg.default_cfg[section]:
        known = ", ".join(sorted(cfg.default_cfg[section]))
        logger.error(f"Unknown key [{section}] {key}, expected one of: {known}")
        sys.exit(1)

    config.set(section, key, value)
    try:
        cfg.get_retry_policy(config)
        cfg.get_command_timeout(config)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    config.save()
    click.echo(f"[{section}] {key} = {value}")

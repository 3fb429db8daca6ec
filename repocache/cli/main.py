"""repocache CLI"""

import click

from repocache import __version__
from repocache.cli.cache import clone, latest_hash
from repocache.cli.settings import settings

from .debug import debug_option


@click.group()
@click.version_option(__version__, prog_name="repocache")
@debug_option
@click.pass_context
def cli(ctx):
    """
    Local mirror cache for remote git repositories.
    """
    ctx.ensure_object(dict)


for command in (clone, latest_hash):
    cli.add_command(debug_option(command))
cli.add_command(settings)

if __name__ == "__main__":
    cli(obj={})

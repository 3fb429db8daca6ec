"""CLI commands for cloning through the git cache"""

import sys
from pathlib import Path
from typing import Optional

import click

from repocache.cli.utils.logging import logger
from repocache.config import get_command_timeout
from repocache.git import Client, Deadline, GitCacheError


def _deadline(timeout: Optional[float]) -> Optional[Deadline]:
    if timeout is None:
        timeout = get_command_timeout()
    return Deadline(timeout=timeout) if timeout is not None else None


def _echo_mirror(info: dict) -> None:
    if "error" in info:
        click.echo(f"# mirror {info['path']} unreadable: {info['error']}")
        return
    click.echo(f"# mirror {info['path']} (HEAD {info['head'] or 'unset'})")
    for ref, sha in sorted(info["refs"].items()):
        click.echo(f"{sha}\t{ref}")


timeout_option = click.option(
    "--timeout",
    type=float,
    default=None,
    help="Abort after this many seconds (defaults to [git] timeout in the config).",
)


@click.command("clone")
@click.argument("base")
@click.argument("full_name")
@click.argument("destination", type=click.Path(file_okay=False, path_type=Path))
@timeout_option
@click.option(
    "--show-mirror",
    is_flag=True,
    help="Also list the refs held by the cached mirror the clone came from.",
)
def clone(
    base: str,
    full_name: str,
    destination: Path,
    timeout: Optional[float],
    show_mirror: bool,
):
    """Clone a repository into DESTINATION through the local mirror cache.

    Example:

      repocache clone https://github.com acme/web ./web
    """
    try:
        with Client.from_config() as client:
            repo = client.clone(base, full_name, destination, deadline=_deadline(timeout))
            commit = repo.get_latest_commit()
            mirrors = []
            if show_mirror:
                mirrors = [m for m in client.describe() if m["repo"] == full_name]
    except (GitCacheError, OSError, ValueError) as e:
        logger.error(f"Failed to clone {full_name}: {e}")
        sys.exit(1)

    click.echo(f"{repo.path} {commit.hash}")
    for info in mirrors:
        _echo_mirror(info)


@click.command("latest-hash")
@click.argument("remote")
@click.argument("branch")
@timeout_option
def latest_hash(remote: str, branch: str, timeout: Optional[float]):
    """Print the commit at the tip of BRANCH on REMOTE."""
    try:
        with Client.from_config() as client:
            commit_hash = client.get_latest_remote_hash_for_branch(
                remote, branch, deadline=_deadline(timeout)
            )
    except (GitCacheError, OSError, ValueError) as e:
        logger.error(f"Failed to resolve {branch} on {remote}: {e}")
        sys.exit(1)

    click.echo(commit_hash)

import logging
from pathlib import Path
from typing import Optional

from .command import Deadline, GitCommand
from .exceptions import (
    CacheDirectoryError,
    CommandCancelledError,
    CommandError,
    CheckoutError,
)
from .repo import Repo

logger = logging.getLogger(__name__)


def checkout_from_mirror(
    git: GitCommand,
    mirror_path: Path,
    destination: Path,
    repo_full_name: str,
    remote: str,
    username: str = "",
    email: str = "",
    deadline: Optional[Deadline] = None,
) -> Repo:
    """
    Clone a working copy from a local mirror into `destination`.

    This is a local clone, so it is not retried. The identity is only
    configured when `username` or `email` is set.

    Args:
        git: Runner used for the clone and the identity setup
        mirror_path: Bare mirror maintained by MirrorCache
        destination: Directory receiving the working copy (created if missing)
        repo_full_name: Repository identifier ("owner/name")
        remote: Remote the mirror was cloned from; bound to the returned handle
        username: Commit author name to configure, if any
        email: Commit author email to configure, if any
        deadline: Aborts git when it fires

    Returns:
        Handle of the new working copy
    """
    destination = Path(destination)
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheDirectoryError(str(destination), str(e)) from e

    try:
        git.run("clone", str(mirror_path), str(destination), deadline=deadline)
    except CommandCancelledError:
        raise
    except CommandError as e:
        logger.error(
            f"Failed to clone {repo_full_name} from local mirror into {destination}: {e.output}"
        )
        raise CheckoutError(str(destination), str(e)) from e

    repo = Repo(repo_full_name, destination, git.git_path, remote, git=git)
    if username or email:
        try:
            repo.set_user(username, email, deadline=deadline)
        except CommandCancelledError:
            raise
        except CommandError as e:
            raise CheckoutError(str(destination), f"failed to set user: {e}") from e

    logger.info(f"Checked out {repo_full_name} to {destination}")
    return repo

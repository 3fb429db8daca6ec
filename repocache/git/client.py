"""
Git client keeping a local mirror cache for faster cloning.

Usage:
    with Client(username="piped", email="piped@example.com") as client:
        repo = client.clone("https://github.com", "acme/web", Path("/work/web"))
        ...
        head = client.get_latest_remote_hash_for_branch(repo.remote, "main")

Every Client owns its own temporary cache root and its own per-repository
lock table. clean() (or leaving the with-block) deletes the cache root; it
must only be called once no other call is in flight.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from repocache import config as cfg

from .checkout import checkout_from_mirror
from .command import Deadline, GitCommand, find_git
from .exceptions import CacheDirectoryError, RemoteRefNotFoundError
from .locks import KeyedLock
from .mirror import MirrorCache
from .repo import Repo
from .retry import retry_command

logger = logging.getLogger(__name__)

CACHE_PREFIX = "gitcache"


class Client:
    """Clones repositories through a shared, per-repository mirror cache."""

    def __init__(
        self,
        username: str = "",
        email: str = "",
        retries: int = 3,
        retry_interval: float = 1.0,
        cache_parent: Optional[Path] = None,
        git: Optional[GitCommand] = None,
    ):
        """
        Locate git and create the cache root.

        Args:
            username: Commit author name set on every working copy ("" to skip)
            email: Commit author email set on every working copy ("" to skip)
            retries: Attempts for every network command
            retry_interval: Seconds between attempts
            cache_parent: Directory for the cache root (defaults to the system temp dir)
            git: Command runner to use instead of the git found on PATH

        Raises:
            GitNotFoundError: If git is not installed
            CacheDirectoryError: If the cache root can't be created
        """
        self.username = username
        self.email = email
        self.retries = retries
        self.retry_interval = retry_interval
        self.git = git or GitCommand(find_git())

        try:
            self.cache_dir = Path(
                tempfile.mkdtemp(
                    prefix=CACHE_PREFIX,
                    dir=str(cache_parent) if cache_parent is not None else None,
                )
            )
        except OSError as e:
            raise CacheDirectoryError(str(cache_parent or tempfile.gettempdir()), str(e)) from e

        self._locks = KeyedLock()
        self._mirrors = MirrorCache(self.cache_dir, self.git, retries, retry_interval)
        logger.debug(f"Created git cache at {self.cache_dir}")

    @classmethod
    def from_config(cls, config: Optional[cfg.ConfigAccessor] = None) -> "Client":
        """Create a client from the [git] and [dirs] configuration sections."""
        username, email = cfg.get_git_identity(config)
        retries, interval = cfg.get_retry_policy(config)
        return cls(
            username=username,
            email=email,
            retries=retries,
            retry_interval=interval,
            cache_parent=cfg.get_git_cache_parent(config),
        )

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clean()

    @property
    def git_path(self) -> str:
        return self.git.git_path

    def clone(
        self,
        base: str,
        repo_full_name: str,
        destination: Path,
        deadline: Optional[Deadline] = None,
    ) -> Repo:
        """
        Clone a repository into `destination`, going through the mirror cache.

        The mirror update and the local clone run under the repository's lock,
        so another clone of the same repository either sees both steps done or
        runs entirely before them.

        Args:
            base: Base URL of the hosting service (e.g. https://github.com)
            repo_full_name: Repository full name ("owner/name")
            destination: Directory receiving the working copy
            deadline: Aborts the operation when it fires

        Returns:
            Handle of the new working copy
        """
        remote = f"{base.rstrip('/')}/{repo_full_name}"

        with self._locks.hold(repo_full_name):
            mirror_path = self._mirrors.ensure_mirror(remote, repo_full_name, deadline)
            return checkout_from_mirror(
                self.git,
                mirror_path,
                Path(destination),
                repo_full_name,
                remote,
                username=self.username,
                email=self.email,
                deadline=deadline,
            )

    def get_latest_remote_hash_for_branch(
        self, remote: str, branch: str, deadline: Optional[Deadline] = None
    ) -> str:
        """
        Ask the remote for the commit at the tip of `branch`.

        The mirror cache is not involved and no lock is taken.

        Raises:
            RemoteRefNotFoundError: If the remote doesn't have the branch
        """
        ref = f"refs/heads/{branch}"
        try:
            out = retry_command(
                self.retries,
                self.retry_interval,
                lambda: self.git.run("ls-remote", remote, ref, deadline=deadline),
                deadline=deadline,
                log=logger,
            )
        except Exception as e:
            logger.error(
                f"Failed to get latest remote hash for branch {branch} of {remote}: "
                f"{getattr(e, 'output', '') or e}"
            )
            raise

        return parse_ls_remote(out, remote, branch)

    def describe(self) -> List[Dict]:
        """
        Describe every mirror currently in the cache.

        Each mirror is read under its repository lock.
        """
        results = []
        for name in self._mirrors.list_mirrors():
            with self._locks.hold(name):
                results.append(self._mirrors.describe_mirror(name))
        return results

    def clean(self) -> None:
        """Remove all cache data."""
        logger.debug(f"Removing git cache at {self.cache_dir}")
        try:
            shutil.rmtree(self.cache_dir)
        except FileNotFoundError:
            pass


def parse_ls_remote(output: str, remote: str, branch: str) -> str:
    """
    Extract the commit hash of `refs/heads/<branch>` from `git ls-remote` output.

    ls-remote matches patterns against the tail of ref names, so
    `refs/heads/feature/refs/heads/main` is listed for `refs/heads/main`
    too. Only the line naming exactly `refs/heads/<branch>` counts. A line
    without a tab is taken as a bare hash.
    """
    wanted = f"refs/heads/{branch}"
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        if "\t" not in line:
            return line
        commit_hash, ref = line.split("\t", 1)
        if ref.strip() == wanted:
            return commit_hash.strip()
    raise RemoteRefNotFoundError(remote, branch)

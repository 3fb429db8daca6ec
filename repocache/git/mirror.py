"""
Bare mirror cache for remote repositories.

Cache Structure Example:
    /tmp/gitcacheXXXXXX/
    ├── acme/
    │   ├── web.git/          # git clone --mirror
    │   └── manifests.git/
    └── platform/
        └── charts.git/

Each repository gets exactly one mirror, keyed by its full name
("owner/name"). The first request clones it with `--mirror`, later requests
run `git fetch` inside it. Working copies are never produced here, see
checkout.py.

Thread Safety:
    MirrorCache does no locking of its own. Callers must hold the per-key
    lock (locks.KeyedLock) of the repository for as long as they use the
    mirror; Client.clone does this.

Known limitation:
    If a first clone fails after git created the mirror directory, the
    partial directory stays in place. The next request sees it as an
    existing mirror and fetches into it. Client.clean() is the way to force
    a fresh clone.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from dulwich.repo import Repo as DulwichRepo

from .command import Deadline, GitCommand
from .exceptions import (
    CacheDirectoryError,
    CommandCancelledError,
    MirrorCloneError,
    MirrorFetchError,
    MirrorStatError,
)
from .retry import retry_command

logger = logging.getLogger(__name__)

MIRROR_SUFFIX = ".git"


class MirrorCache:
    """Keeps one up to date bare mirror per repository under `cache_dir`."""

    def __init__(
        self,
        cache_dir: Path,
        git: GitCommand,
        retries: int,
        retry_interval: float,
    ):
        self.cache_dir = Path(cache_dir)
        self.git = git
        self.retries = retries
        self.retry_interval = retry_interval

    def mirror_path(self, repo_full_name: str) -> Path:
        return self.cache_dir / f"{repo_full_name}{MIRROR_SUFFIX}"

    def ensure_mirror(
        self,
        remote: str,
        repo_full_name: str,
        deadline: Optional[Deadline] = None,
    ) -> Path:
        """
        Clone the mirror if it is missing, otherwise fetch to update it.

        Args:
            remote: Remote location of the repository
            repo_full_name: Repository identifier ("owner/name")
            deadline: Aborts git and the retry loop when it fires

        Returns:
            Path to the bare mirror

        Raises:
            MirrorStatError: If the mirror path can't be checked
            CacheDirectoryError: If the parent directory can't be created
            MirrorCloneError: If the first clone failed after all retries
            MirrorFetchError: If updating the existing mirror failed
            CommandCancelledError: If the deadline fired
        """
        path = self.mirror_path(repo_full_name)

        try:
            os.stat(path)
            exists = True
        except FileNotFoundError:
            exists = False
        except OSError as e:
            logger.error(f"Unable to check the cache of {repo_full_name}: {e}")
            raise MirrorStatError(str(path), str(e)) from e

        if not exists:
            self._clone(remote, repo_full_name, path, deadline)
        else:
            self._fetch(repo_full_name, path, deadline)
        return path

    def _clone(
        self,
        remote: str,
        repo_full_name: str,
        path: Path,
        deadline: Optional[Deadline],
    ) -> None:
        # Cache miss, clone for the first time
        logger.info(f"Cloning {repo_full_name} for the first time into {path}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheDirectoryError(str(path.parent), str(e)) from e

        try:
            retry_command(
                self.retries,
                self.retry_interval,
                lambda: self.git.run(
                    "clone", "--mirror", remote, str(path), deadline=deadline
                ),
                deadline=deadline,
                log=logger,
            )
        except CommandCancelledError:
            raise
        except Exception as e:
            output = getattr(e, "output", "") or str(e)
            logger.error(f"Failed to clone {repo_full_name} from remote: {output}")
            raise MirrorCloneError(remote, repo_full_name, output) from e

    def _fetch(
        self,
        repo_full_name: str,
        path: Path,
        deadline: Optional[Deadline],
    ) -> None:
        # Cache hit, fetch to keep it updated
        logger.info(f"Fetching {repo_full_name} to update the cache")
        try:
            retry_command(
                self.retries,
                self.retry_interval,
                lambda: self.git.run("fetch", cwd=path, deadline=deadline),
                deadline=deadline,
                log=logger,
            )
        except CommandCancelledError:
            raise
        except Exception as e:
            output = getattr(e, "output", "") or str(e)
            logger.error(f"Failed to fetch {repo_full_name} from remote: {output}")
            raise MirrorFetchError(repo_full_name, str(path), output) from e

    def list_mirrors(self) -> List[str]:
        """Return the full names of all mirrors present on disk."""
        if not self.cache_dir.exists():
            return []

        names = []
        for path in sorted(self.cache_dir.rglob(f"*{MIRROR_SUFFIX}")):
            if not path.is_dir() or not (path / "HEAD").exists():
                continue
            rel = path.relative_to(self.cache_dir).as_posix()
            names.append(rel[: -len(MIRROR_SUFFIX)])
        return names

    def describe_mirror(self, repo_full_name: str) -> Dict:
        """
        Describe one mirror: its refs and the commit its HEAD resolves to.

        The caller must hold the repository's per-key lock.

        Returns:
            Dictionary with:
            - repo: Repository full name
            - path: Path of the mirror
            - refs: Mapping of ref name to commit hash
            - head: Commit hash HEAD points to (None for an empty mirror)
            or, for an unreadable mirror, "error" instead of refs/head
        """
        path = self.mirror_path(repo_full_name)
        info: Dict = {"repo": repo_full_name, "path": str(path)}
        try:
            repo = DulwichRepo(str(path))
            try:
                refs = repo.get_refs()
            finally:
                repo.close()
        except Exception as e:
            logger.debug(f"Failed to read mirror at {path}: {e}")
            info["error"] = str(e)
            return info

        info["refs"] = {
            name.decode("utf-8"): sha.decode("ascii")
            for name, sha in refs.items()
            if name != b"HEAD"
        }
        head = refs.get(b"HEAD")
        info["head"] = head.decode("ascii") if head else None
        return info

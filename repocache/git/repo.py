"""
Working-copy handle returned by Client.clone.

Writes (identity, checkout, copy) shell out through GitCommand; read-only
inspection goes through GitPython.
"""

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from git import Repo as GitRepo
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from .command import Deadline, GitCommand
from .exceptions import CheckoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Commit:
    hash: str
    author: str
    message: str
    created_at: datetime


class Repo:
    """
    A disposable checkout of one repository.

    The caller owns `path`; call clean() (or remove it) once done.
    """

    def __init__(
        self,
        full_name: str,
        path: Path,
        git_path: str,
        remote: str,
        git: Optional[GitCommand] = None,
    ):
        self.full_name = full_name
        self.path = Path(path)
        self.git_path = git_path
        self.remote = remote
        self._git = git or GitCommand(git_path)

    def __repr__(self) -> str:
        return f"Repo(full_name={self.full_name!r}, path={str(self.path)!r})"

    def _open(self) -> GitRepo:
        try:
            return GitRepo(self.path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise CheckoutError(str(self.path), f"not a git working copy: {e}") from e

    def set_user(
        self, username: str, email: str, deadline: Optional[Deadline] = None
    ) -> None:
        """Configure the commit identity of this working copy."""
        if username:
            self._git.run("config", "user.name", username, cwd=self.path, deadline=deadline)
        if email:
            self._git.run("config", "user.email", email, cwd=self.path, deadline=deadline)

    def get_latest_commit(self) -> Commit:
        """Return the commit HEAD currently points to."""
        with self._open() as repo:
            head = repo.head.commit
            return Commit(
                hash=head.hexsha,
                author=f"{head.author.name} <{head.author.email}>",
                message=head.message.strip(),
                created_at=head.committed_datetime,
            )

    def get_cloned_branch(self) -> str:
        """Return the checked out branch, or "" when HEAD is detached."""
        with self._open() as repo:
            if repo.head.is_detached:
                return ""
            return repo.active_branch.name

    def is_dirty(self) -> bool:
        with self._open() as repo:
            return repo.is_dirty(untracked_files=True)

    def checkout(self, revision: str, deadline: Optional[Deadline] = None) -> None:
        self._git.run("checkout", revision, cwd=self.path, deadline=deadline)

    def copy(self, destination: Path, deadline: Optional[Deadline] = None) -> "Repo":
        """
        Clone this working copy into `destination`.

        The new handle is bound to the same remote as this one.
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        self._git.run("clone", str(self.path), str(destination), deadline=deadline)
        return Repo(self.full_name, destination, self.git_path, self.remote, git=self._git)

    def clean(self) -> None:
        """Delete the working copy from disk."""
        logger.debug(f"Removing working copy {self.path}")
        shutil.rmtree(self.path, ignore_errors=True)

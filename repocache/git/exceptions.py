"""
Exception classes for the git cache.
"""

from typing import Optional, Sequence


class GitCacheError(Exception):
    """Base exception for all git cache errors."""

    pass


class GitNotFoundError(GitCacheError):
    """Raised when the git executable cannot be located on the host."""

    def __init__(self, name: str = "git"):
        self.name = name
        super().__init__(f"Unable to find the path of {name}")


class CacheDirectoryError(GitCacheError):
    """Raised when a cache, mirror or destination directory cannot be created."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        if reason:
            super().__init__(f"Unable to prepare directory {path}: {reason}")
        else:
            super().__init__(f"Unable to prepare directory {path}")


class CommandError(GitCacheError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(
        self,
        args: Sequence[str],
        output: str = "",
        returncode: Optional[int] = None,
    ):
        self.args_list = list(args)
        self.output = output
        self.returncode = returncode
        message = f"git {' '.join(self.args_list)} failed"
        if returncode is not None:
            message += f" with exit code {returncode}"
        if output:
            message += f": {output.strip()}"
        super().__init__(message)


class CommandCancelledError(CommandError):
    """Raised when a git command is aborted by its deadline or cancel event."""

    def __init__(self, args: Sequence[str], output: str = ""):
        self.args_list = list(args)
        self.output = output
        self.returncode = None
        GitCacheError.__init__(self, f"git {' '.join(self.args_list)} was cancelled")


class MirrorStatError(GitCacheError):
    """Raised when the existence of a mirror cannot be determined."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to check mirror at {path}: {reason}")


class MirrorCloneError(GitCacheError):
    """Raised when the first mirror clone of a repository fails."""

    def __init__(self, remote: str, repo: str, output: str = ""):
        self.remote = remote
        self.repo = repo
        self.output = output
        super().__init__(f"Failed to clone {repo} from remote {remote}: {output.strip()}")


class MirrorFetchError(GitCacheError):
    """Raised when fetching into an existing mirror fails."""

    def __init__(self, repo: str, path: str, output: str = ""):
        self.repo = repo
        self.path = path
        self.output = output
        super().__init__(f"Failed to fetch {repo} into {path}: {output.strip()}")


class CheckoutError(GitCacheError):
    """Raised when a working copy cannot be produced from a mirror."""

    def __init__(self, destination: str, reason: str):
        self.destination = destination
        self.reason = reason
        super().__init__(f"Failed to check out into {destination}: {reason}")


class RemoteRefNotFoundError(GitCacheError):
    """Raised when the remote does not advertise the requested branch."""

    def __init__(self, remote: str, branch: str):
        self.remote = remote
        self.branch = branch
        super().__init__(f"Branch {branch} not found in remote {remote}")

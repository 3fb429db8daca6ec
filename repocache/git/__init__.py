"""
Git operations for repocache.

Architecture:
    Two-tier caching:
    - Mirror Layer: one bare `git clone --mirror` per repository under a
      per-client temporary cache root, refreshed with `git fetch`
    - Work Layer: disposable working copies cloned from the local mirror
      into caller-chosen destinations

Use Client as the entry point; the other names are exported for callers
that compose the pieces themselves.
"""

from .client import Client, parse_ls_remote
from .command import Deadline, GitCommand, find_git
from .exceptions import (
    CacheDirectoryError,
    CheckoutError,
    CommandCancelledError,
    CommandError,
    GitCacheError,
    GitNotFoundError,
    MirrorCloneError,
    MirrorFetchError,
    MirrorStatError,
    RemoteRefNotFoundError,
)
from .locks import KeyedLock
from .mirror import MirrorCache
from .repo import Commit, Repo
from .retry import retry_command

__all__ = [
    "Client",
    "parse_ls_remote",
    "Deadline",
    "GitCommand",
    "find_git",
    "KeyedLock",
    "MirrorCache",
    "Commit",
    "Repo",
    "retry_command",
    # Errors
    "GitCacheError",
    "GitNotFoundError",
    "CacheDirectoryError",
    "CommandError",
    "CommandCancelledError",
    "MirrorStatError",
    "MirrorCloneError",
    "MirrorFetchError",
    "CheckoutError",
    "RemoteRefNotFoundError",
]

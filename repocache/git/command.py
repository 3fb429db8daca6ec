"""
Run git as an external command.

The runner captures combined stdout/stderr, runs in an explicit working
directory and aborts the subprocess when the caller's deadline fires. It has
no retry logic of its own; see retry.py.
"""

import logging
import os
import shutil
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import Optional, Union

from .exceptions import CommandCancelledError, CommandError, GitNotFoundError

logger = logging.getLogger(__name__)

# How often a running command checks its deadline (seconds)
_POLL_INTERVAL = 0.1


class Deadline:
    """
    A timeout and/or cancel event shared by every command of one call.

    Usage:
        cancel = threading.Event()
        deadline = Deadline(timeout=300, event=cancel)
        client.clone(base, "org/app", dest, deadline=deadline)
        # from another thread: cancel.set()
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        event: Optional[threading.Event] = None,
    ):
        self.event = event
        self.expires_at = None if timeout is None else time.monotonic() + timeout

    def done(self) -> bool:
        """True once the timeout has elapsed or the event has been set."""
        if self.event is not None and self.event.is_set():
            return True
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def sleep(self, seconds: float) -> bool:
        """
        Sleep for up to `seconds`, waking early if the deadline fires.

        Returns:
            True if the deadline fired before or during the sleep
        """
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if self.event is not None:
            self.event.wait(seconds)
        else:
            time.sleep(seconds)
        return self.done()


def find_git() -> str:
    """Locate the git executable on PATH."""
    git_path = shutil.which("git")
    if git_path is None:
        raise GitNotFoundError("git")
    return git_path


def _kill(process: subprocess.Popen) -> None:
    # The command runs in its own session, so this also reaps git's helpers
    # (remote-https, ssh, ...)
    try:
        os.killpg(os.getpgid(process.pid), signal.SIGKILL)
    except (ProcessLookupError, OSError):
        pass
    process.wait()


class GitCommand:
    """Invokes one git binary with explicit arguments."""

    def __init__(self, git_path: str):
        self.git_path = git_path

    def run(
        self,
        *args: str,
        cwd: Optional[Union[str, Path]] = None,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """
        Run `git <args>` and return its combined output.

        Args:
            *args: Arguments passed to git
            cwd: Working directory (defaults to the current directory)
            deadline: Aborts the command when it fires

        Returns:
            Combined stdout and stderr

        Raises:
            CommandError: If git exits with a non-zero status
            CommandCancelledError: If the deadline fired before git finished
        """
        if deadline is not None and deadline.done():
            raise CommandCancelledError(args)

        logger.debug(f"Running git {' '.join(args)} (cwd={cwd or os.getcwd()})")

        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            process = subprocess.Popen(
                [self.git_path, *args],
                cwd=str(cwd) if cwd is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                encoding="utf-8",
                errors="replace",
                env=env,
                start_new_session=True,
            )
        except OSError as e:
            raise CommandError(args, str(e)) from e

        output = ""
        try:
            while True:
                try:
                    output, _ = process.communicate(timeout=_POLL_INTERVAL)
                    break
                except subprocess.TimeoutExpired:
                    if deadline is not None and deadline.done():
                        _kill(process)
                        output, _ = process.communicate()
                        raise CommandCancelledError(args, output or "")
        finally:
            if process.poll() is None:
                _kill(process)

        if process.returncode != 0:
            raise CommandError(args, output or "", process.returncode)
        return output or ""

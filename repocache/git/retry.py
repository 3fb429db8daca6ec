import logging
import time
from typing import Callable, Optional, TypeVar

from .command import Deadline
from .exceptions import CommandCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_command(
    retries: int,
    interval: float,
    command: Callable[[], T],
    deadline: Optional[Deadline] = None,
    log: Optional[logging.Logger] = None,
) -> T:
    """
    Call `command` until it succeeds, at most `retries` times, with a constant backoff.

    Every failure is retried the same way, except cancellation, which is
    raised straight away. There is no sleep after the last attempt.

    Args:
        retries: Maximum number of attempts (>= 1)
        interval: Seconds to sleep between attempts
        command: Zero-argument callable to invoke
        deadline: Stops the retries when it fires
        log: Logger receiving the per-attempt warnings

    Returns:
        Whatever the first successful call returned

    Raises:
        The exception of the last attempt once all attempts failed, or
        CommandCancelledError if the deadline fired while waiting.
    """
    if retries < 1:
        raise ValueError(f"retries must be at least 1, got {retries}")

    log = log or logger
    attempt = 0
    while True:
        attempt += 1
        try:
            return command()
        except CommandCancelledError:
            raise
        except Exception as e:
            output = (getattr(e, "output", "") or str(e)).strip()
            if attempt >= retries:
                log.warning(f"command failed {attempt} times, giving up: {output}")
                raise
            log.warning(
                f"command failed {attempt} times, sleep {interval} seconds "
                f"before retrying: {output}"
            )
            last_error = e

        if deadline is None:
            time.sleep(interval)
        elif deadline.sleep(interval):
            raise CommandCancelledError(
                getattr(last_error, "args_list", []),
                getattr(last_error, "output", ""),
            ) from last_error

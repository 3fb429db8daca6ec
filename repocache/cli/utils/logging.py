import logging
import sys

logger = logging.getLogger("repocache")

_FORMAT = "%(message)s"
_DEBUG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool) -> None:
    """
    Route repocache records to the console.

    Debug output includes every git command line, so records are prefixed
    with their level and module to tell them apart from results.
    """
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # click swaps sys.stdout per invocation, so the handler is rebuilt each time
    for handler in [h for h in logger.handlers if getattr(h, "_repocache_console", False)]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_DEBUG_FORMAT if debug else _FORMAT))
    handler._repocache_console = True
    logger.addHandler(handler)

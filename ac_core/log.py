"""Logging setup for the ac command line.

Library modules only create loggers under ``ac_core``; handlers are attached
here by the CLI, one stderr handler at a time.
"""

import logging
import sys
import threading

__all__ = ["setup_logging"]

_LOGGER_NAME = "ac_core"
_FORMAT = "%(levelname)s %(name)s: %(message)s"
_setup_lock = threading.Lock()


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stderr handler to the ``ac_core`` logger.

    Calling it again adjusts the level and never stacks handlers. A handler
    bound to an earlier ``sys.stderr`` (test runners swap it per invocation)
    is replaced by one bound to the current stream.

    Args:
        verbose: Log at DEBUG instead of WARNING

    Returns:
        The package logger
    """
    logger = logging.getLogger(_LOGGER_NAME)
    level = logging.DEBUG if verbose else logging.WARNING

    with _setup_lock:
        logger.setLevel(level)

        for h in logger.handlers[:]:
            if type(h) is not logging.StreamHandler:
                continue
            if h.stream is sys.stderr:
                return logger
            logger.removeHandler(h)
            h.close()

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)

    return logger

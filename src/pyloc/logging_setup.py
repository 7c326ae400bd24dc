"""
Logging configuration for the pyloc command line.

Library modules only create their loggers; handlers are installed here,
once, by the command-line entry point.
"""

import logging
import sys

# Finer than DEBUG: per-node traversal chatter
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def setup_logging(verbose: bool = False, trace: bool = False) -> None:
    """
    Configure console logging for a pyloc run.

    Messages go to stderr so that rewritten source printed to stdout stays
    clean.

    Args:
        verbose: Log debug messages
        trace: Log trace messages (implies verbose)
    """
    if trace:
        level = TRACE
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear any existing handlers
    root_logger.handlers.clear()

    formatter = logging.Formatter("%(levelname)s - %(message)s")
    if level < logging.INFO:
        formatter = logging.Formatter("%(levelname)s - %(name)s - %(funcName)s:%(lineno)d - %(message)s")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

"""
Logging Configuration
=====================
Handlers for command line runs of the `ipsr` package.

Why is this file needed?
------------------------
1. Clean stdout: every diagnostic goes to stderr, so a run can be piped or
   wrapped by another tool without log lines mixing into its output.
2. One line per iteration: the console format is kept short so that the
   per-iteration "normals variation" lines stay readable in a terminal; the
   optional log file gets the full record (time, module, level).
3. Verbosity flags: `-q` and repeated `-v` map onto logging levels here,
   not in the argument parser.
"""
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "ipsr"

CONSOLE_FORMAT = "[%(asctime)s] %(levelname)-7s %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def verbosity_to_level(verbose: int = 0, quiet: bool = False) -> int:
    """
    Map command line verbosity flags to a logging level.

    Args:
        verbose: Number of `-v` flags. One or more enables debug output.
        quiet: Only warnings and errors. Takes precedence over `verbose`.

    Returns:
        A level from the `logging` module.
    """
    if quiet:
        return logging.WARNING
    if verbose >= 1:
        return logging.DEBUG
    return logging.INFO


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach a stderr handler (and optionally a file handler) to the package logger.

    The file handler always records at DEBUG so that a saved log keeps the
    per-round face statistics even when the console is at INFO.

    Args:
        level: Console level, usually from `verbosity_to_level`.
        log_file: Optional path of a log file, overwritten on each run.

    Returns:
        The package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else level)

    # main() may run several times in one process (tests, notebooks)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger

"""
Logging setup for simulation runs.

Library modules only create ``logging.getLogger(__name__)`` loggers and
emit per-cycle events (hand-offs, burst start/retire, queue full) at DEBUG.
Entry points such as the report CLI call setup_logging() once to attach:

- a colored console handler (colorlog) at ``console_level``
- an optional plain-text file handler at ``file_level``, so long DEBUG
  traces can be kept out of the terminal
"""

import logging

import colorlog


LOG_COLORS = {
    "DEBUG": "blue",
    "INFO": "bold_blue",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s%(asctime)s %(levelname)s [%(name)s]: %(message)s",
        datefmt=DATE_FORMAT,
        log_colors=LOG_COLORS,
    ))
    return handler


def _file_handler(path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s:%(lineno)d]: %(message)s",
        datefmt=DATE_FORMAT,
    ))
    return handler


def setup_logging(
    log_file_path=None,
    file_level: int = logging.DEBUG,
    console_level: int = logging.INFO,
) -> logging.Logger:
    """
    Configure the root logger for a simulation run.

    Existing root handlers are replaced, so calling this twice does not
    duplicate output.

    Args:
        log_file_path: Optional trace file; no file handler when None.
        file_level: Threshold for the file handler.
        console_level: Threshold for the colored console handler.

    Returns:
        The configured root logger.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    if root.hasHandlers():
        root.handlers.clear()

    root.addHandler(_console_handler(console_level))
    if log_file_path:
        root.addHandler(_file_handler(log_file_path, file_level))

    logging.getLogger(__name__).debug("Logging configured (console=%s, file=%s)",
                                      logging.getLevelName(console_level),
                                      log_file_path or "-")
    return root

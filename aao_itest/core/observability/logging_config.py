"""
Logging configuration for the harness process.

``main.py`` calls ``setup_logging`` once, before any phase runs; module
loggers obtained with ``logging.getLogger(__name__)`` pick it up.

Each check logs its verdict at INFO and CI keeps that output as the
run's audit trail, so INFO is the default. Level precedence:
    --debug / --verbose / --quiet  >  AAO_ITEST_LOG_LEVEL  >  INFO

Console output goes to stderr; stdout carries only ``explain``,
``list`` and ``--json`` reports. AAO_ITEST_LOG_FILE adds a file copy at
AAO_ITEST_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import sys

DEFAULT_LEVEL = "INFO"

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"

# console level → (format, datefmt); the first row whose level is >= the
# configured one wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(levelname)s %(message)s", None),
)

_FILE_FORMAT = (_DETAILED, "%Y-%m-%d %H:%M:%S")

# The AWS SDK logs endpoint resolution and retries below WARNING
_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next(
        (f, d) for threshold, f, d in _CONSOLE_FORMATS if level <= threshold
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
    return handler


def setup_logging(
    level: str = DEFAULT_LEVEL,
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with the harness ones.

    Safe to call more than once; earlier handlers are detached.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path of a log file to append to.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold the AWS SDK loggers at WARNING unless
            the console is at DEBUG.
    """
    console_level = parse_level(level)
    handlers = [_console_handler(console_level)]

    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    for handler in handlers:
        root.addHandler(handler)
    # the root must pass records down to the most verbose handler
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown or empty names mean INFO."""
    numeric = getattr(logging, level.upper(), None) if level else None
    return numeric if isinstance(numeric, int) else logging.INFO

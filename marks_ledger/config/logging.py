"""Loguru console sink setup shared by the API and replay entrypoints."""

from __future__ import annotations

import sys

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def config_setup_logging(log_level: str, environment_name: str = "development") -> None:
    """Replace the default loguru handler with the formatted console sink.

    Args:
        log_level: Minimum level emitted to stderr.
        environment_name: Runtime environment label included in the startup line.

    Raises:
        ValueError: Raised when log level is blank.
    """

    if not log_level or not log_level.strip():
        raise ValueError("log_level must not be blank")

    logger.remove()
    logger.add(
        sys.stderr,
        format=_CONSOLE_FORMAT,
        level=log_level.strip().upper(),
        colorize=True,
    )
    logger.info("logging initialized | environment={} | level={}", environment_name, log_level.strip().upper())

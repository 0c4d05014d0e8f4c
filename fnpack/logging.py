"""Logging utilities for fnpack commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

_LOGGER_NAME = "fnpack"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the fnpack hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the fnpack logger with console output and an optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Repeated CLI invocations in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("[fnpack] %(levelname)s %(message)s"))
    logger.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(level)
        sink.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(sink)

    return logger


def forward_warnings(
    logger: logging.Logger, origin: str, warnings: Iterable[str]
) -> int:
    """Emit resolver warnings for ``origin`` and return how many were logged."""
    count = 0
    for message in warnings:
        text = message.strip()
        if not text:
            continue
        if text.startswith("Error: "):
            text = "Warning: " + text[len("Error: "):]
        logger.warning("%s: %s", origin, text)
        count += 1
    return count


__all__ = ["configure_logging", "forward_warnings", "get_logger"]

"""Logging setup for astrobridge command line entry points."""

from __future__ import annotations

import logging
from typing import Any

__all__ = ["configure_logging"]

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(value: str | int | None) -> int:
    """Return a logging level derived from ``value``.

    Accepts standard level names (case insensitive) or a numeric level.
    Anything unrecognised maps to :data:`logging.INFO`.
    """

    if value is None:
        return logging.INFO

    if isinstance(value, int):
        return value

    candidate = value.strip()
    if not candidate:
        return logging.INFO

    if candidate.isdigit():
        return int(candidate)

    resolved = logging.getLevelName(candidate.upper())
    if isinstance(resolved, int):
        return resolved

    return logging.INFO


def configure_logging(*, level: str | int | None = None, **kwargs: Any) -> int:
    """Configure the root logger and return the effective level.

    ``level`` normally comes from :attr:`RuntimeSettings.log_level`
    (``LOG_LEVEL``). Remaining ``kwargs`` are forwarded to
    :func:`logging.basicConfig`.
    """

    effective_level = _coerce_level(level)

    logging.basicConfig(
        level=effective_level,
        format=kwargs.pop("format", _DEFAULT_FORMAT),
        datefmt=kwargs.pop("datefmt", _DEFAULT_DATEFMT),
        force=kwargs.pop("force", True),
        **kwargs,
    )

    return effective_level

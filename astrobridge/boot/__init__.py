"""Entry-point helpers for astrobridge command line tools."""

from .logging import configure_logging

__all__ = ["configure_logging"]

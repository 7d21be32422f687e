"""Lazy access to the optional ``pyswisseph`` distribution."""

from __future__ import annotations

import importlib
import importlib.util
from types import ModuleType

__all__ = ["swe", "reset_swe", "has_swe", "SWISSEPH_MODULE"]

SWISSEPH_MODULE = "swisseph"
"""Import name of the ``pyswisseph`` distribution."""

_swe_mod: ModuleType | None = None


def _load_swe() -> ModuleType:
    global _swe_mod
    if _swe_mod is None:
        try:
            _swe_mod = importlib.import_module(SWISSEPH_MODULE)
        except Exception as exc:  # pragma: no cover - import errors depend on env
            raise RuntimeError(
                "pyswisseph is not installed (package: 'pyswisseph'); "
                "install astrobridge[swisseph] to enable the module fallback"
            ) from exc
    return _swe_mod


def swe() -> ModuleType:
    """Return the imported :mod:`swisseph` module, importing it on first use."""

    return _load_swe()


def reset_swe() -> None:
    """For tests: force a fresh import on the next :func:`swe` call."""

    global _swe_mod
    _swe_mod = None


def has_swe() -> bool:
    """Return ``True`` if pyswisseph is importable."""

    if _swe_mod is not None:
        return True
    return importlib.util.find_spec(SWISSEPH_MODULE) is not None

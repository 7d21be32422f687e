"""Swiss ephemeris data directory discovery."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from pathlib import Path

__all__ = [
    "DEFAULT_ENV_KEYS",
    "EPHE_SUFFIXES",
    "has_ephemeris_files",
    "iter_candidate_paths",
    "get_se_ephe_path",
]

DEFAULT_ENV_KEYS: tuple[str, ...] = (
    "SE_EPHE_PATH",
    "SWE_EPH_PATH",
    "ASTROBRIDGE_EPHE_PATH",
)
"""Environment variables checked (in order) for Swiss ephemeris paths."""

EPHE_SUFFIXES: tuple[str, ...] = (".se1", ".se2", ".se3", ".se4", ".se5")

_PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def _relative_hints(cwd: Path) -> tuple[Path, ...]:
    return (
        _PACKAGE_ROOT / "ephe",
        cwd / "ephe",
        cwd / "lib" / "ephe",
        cwd / "public" / "ephe",
    )


_SYSTEM_HINTS: tuple[Path, ...] = (
    Path.home() / ".sweph",
    Path("/usr/share/sweph"),
    Path("/usr/share/libswisseph"),
)


def _first_env(keys: Iterable[str]) -> str | None:
    """Return the first non-empty environment variable value from ``keys``."""

    for key in keys:
        value = os.environ.get(key)
        if value:
            return value
    return None


def _ensure_dir(path: os.PathLike[str] | str | None) -> str | None:
    """Expand ``path`` to an absolute directory string when it exists."""

    if not path:
        return None
    candidate = Path(path).expanduser()
    if candidate.is_dir():
        return str(candidate.resolve())
    return None


def iter_candidate_paths(
    default: str | os.PathLike[str] | None = None,
) -> Iterator[str]:
    """Yield existing ephemeris directories in priority order."""

    seen: set[str] = set()
    hints: list[os.PathLike[str] | str | None] = [default]
    hints.extend(_relative_hints(Path.cwd()))
    hints.extend(_SYSTEM_HINTS)
    for hint in hints:
        candidate = _ensure_dir(hint)
        if candidate and candidate not in seen:
            seen.add(candidate)
            yield candidate


def get_se_ephe_path(default: str | os.PathLike[str] | None = None) -> str | None:
    """Return the Swiss ephemeris path or ``None`` when unavailable."""

    env_path = _ensure_dir(_first_env(DEFAULT_ENV_KEYS))
    if env_path:
        return env_path

    for candidate in iter_candidate_paths(default):
        return candidate
    return None


def has_ephemeris_files(path: str | os.PathLike[str] | None) -> bool:
    """Return ``True`` when ``path`` holds Swiss ``.se1``-``.se5`` files."""

    candidate = _ensure_dir(path)
    if candidate is None:
        return False
    try:
        entries = list(Path(candidate).iterdir())
    except OSError:
        return False
    return any(entry.is_file() and entry.suffix.lower() in EPHE_SUFFIXES for entry in entries)

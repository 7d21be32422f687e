"""Platform detection and prebuilt binary layout for the native backend."""

from __future__ import annotations

import os
import platform as _platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Final

__all__ = [
    "SUPPORTED_PLATFORMS",
    "PlatformInfo",
    "get_platform_key",
    "has_prebuilds",
    "is_supported_platform",
    "library_filename",
    "platform_info",
    "prebuild_paths",
]

SUPPORTED_PLATFORMS: Final[tuple[str, ...]] = (
    "linux-x64",
    "linux-arm64",
    "darwin-arm64",
    "darwin-x64",
    "win32-x64",
    "win32-arm64",
)
"""Platform keys for which release builds ship a prebuilt engine library."""

PACKAGE_ROOT: Final[Path] = Path(__file__).resolve().parent.parent
PREBUILDS_DIRNAME: Final[str] = "prebuilds"

_OS_ALIASES: Final[dict[str, str]] = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "win32",
    "win32": "win32",
    "cygwin": "win32",
}

_ARCH_ALIASES: Final[dict[str, str]] = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8l": "arm64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
    "armv7l": "arm",
    "armv6l": "arm",
}


def _normalise_os(name: str) -> str:
    lowered = name.strip().lower()
    return _OS_ALIASES.get(lowered, lowered)


def _normalise_arch(name: str) -> str:
    lowered = name.strip().lower()
    return _ARCH_ALIASES.get(lowered, lowered)


def get_platform_key(system: str | None = None, machine: str | None = None) -> str:
    """Return ``{os}-{arch}`` for the running interpreter (or the given values)."""

    os_name = _normalise_os(system if system is not None else _platform.system())
    arch = _normalise_arch(machine if machine is not None else _platform.machine())
    return f"{os_name}-{arch}"


def is_supported_platform(key: str) -> bool:
    return key in SUPPORTED_PLATFORMS


def library_filename(platform_key: str) -> str:
    """Return the engine library file name used under ``prebuilds/<key>/``."""

    if platform_key.startswith("win32"):
        return "swe.dll"
    if platform_key.startswith("darwin"):
        return "libswe.dylib"
    return "libswe.so"


def prebuild_paths(
    platform_key: str,
    *,
    prebuild_dir: os.PathLike[str] | str | None = None,
) -> list[Path]:
    """Return prebuilt library candidates for ``platform_key`` in search order.

    An explicitly configured directory comes first, then the copy shipped inside
    the package, then the shared data location used by installed consumers.
    """

    filename = library_filename(platform_key)
    roots: list[Path] = []
    if prebuild_dir:
        roots.append(Path(prebuild_dir).expanduser())
    roots.append(PACKAGE_ROOT / PREBUILDS_DIRNAME)
    roots.append(Path(sys.prefix) / "share" / "astrobridge" / PREBUILDS_DIRNAME)

    paths: list[Path] = []
    for root in roots:
        candidate = root / platform_key / filename
        if candidate not in paths:
            paths.append(candidate)
    return paths


def has_prebuilds(
    platform_key: str | None = None,
    *,
    prebuild_dir: os.PathLike[str] | str | None = None,
) -> bool:
    """Return ``True`` when a prebuilt library exists for the platform."""

    key = platform_key or get_platform_key()
    return any(path.is_file() for path in prebuild_paths(key, prebuild_dir=prebuild_dir))


@dataclass(frozen=True, slots=True)
class PlatformInfo:
    """Deployment diagnostics for the native backend."""

    system: str
    machine: str
    key: str
    is_supported: bool
    prebuild_paths: tuple[str, ...]

    def as_dict(self) -> dict[str, object]:
        return {
            "platform": self.system,
            "arch": self.machine,
            "key": self.key,
            "is_supported": self.is_supported,
            "prebuild_paths": list(self.prebuild_paths),
        }


def platform_info(*, prebuild_dir: os.PathLike[str] | str | None = None) -> PlatformInfo:
    """Describe the running platform and where prebuilt binaries are searched."""

    key = get_platform_key()
    return PlatformInfo(
        system=_platform.system(),
        machine=_platform.machine(),
        key=key,
        is_supported=is_supported_platform(key),
        prebuild_paths=tuple(str(p) for p in prebuild_paths(key, prebuild_dir=prebuild_dir)),
    )

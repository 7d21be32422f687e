"""Multi-strategy resolution of the process-hosted native backend.

Strategies run in order until one yields a working backend:

1. prebuilt ``libswe`` for the current platform key (configured directory,
   package-relative ``prebuilds/``, then the shared data location);
2. a locally built library (``build/`` beside the package or the system
   linker path);
3. the optional ``pyswisseph`` distribution.

Concurrent callers share one in-flight search. Whether the resolved handle is
retained afterwards is governed by :attr:`BridgeConfig.cache_module`.
"""

from __future__ import annotations

import asyncio
import ctypes
import ctypes.util
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from time import perf_counter
from typing import Any

from ..concurrency import SingleFlight
from ..contract import EphemerisBackend
from ..ephemeris.swe import swe
from ..errors import BackendLoadError, BackendNotInitializedError
from ..observability.metrics import (
    BACKEND_LOAD_ATTEMPTS,
    BACKEND_LOAD_DURATION,
    BACKEND_SEARCHES,
)
from ..runtime_config import BridgeConfig
from .ctypes_adapter import CtypesSwephAdapter
from .module_adapter import SwissephModuleAdapter
from .platform import (
    PACKAGE_ROOT,
    SUPPORTED_PLATFORMS,
    get_platform_key,
    is_supported_platform,
    library_filename,
    prebuild_paths,
)

LOG = logging.getLogger(__name__)

__all__ = [
    "LoadStrategy",
    "NativeBackendLoader",
    "default_loader",
    "default_strategies",
    "reset_default_loader",
]

LibraryLoader = Callable[[str], Any]


@dataclass(frozen=True, slots=True)
class LoadStrategy:
    """A named way of producing a backend; ``load`` raises when it cannot."""

    name: str
    load: Callable[[str], EphemerisBackend]


def _load_prebuilt(
    platform_key: str,
    *,
    prebuild_dir: Path | None,
    library_loader: LibraryLoader,
) -> EphemerisBackend:
    misses: list[str] = []
    for path in prebuild_paths(platform_key, prebuild_dir=prebuild_dir):
        if not path.is_file():
            LOG.debug("No prebuilt library at %s", path)
            misses.append(f"{path} (missing)")
            continue
        try:
            return CtypesSwephAdapter(library_loader(str(path)), source=str(path))
        except (OSError, AttributeError) as exc:
            LOG.debug("Prebuilt library at %s could not be loaded: %s", path, exc)
            misses.append(f"{path} ({exc})")
    raise FileNotFoundError(
        f"no prebuild found for {platform_key} (searched: {', '.join(misses)})"
    )


def _local_build_candidates(platform_key: str) -> list[Path]:
    build_root = PACKAGE_ROOT.parent / "build"
    filename = library_filename(platform_key)
    return [
        build_root / platform_key / filename,
        build_root / "Release" / filename,
        build_root / filename,
    ]


def _load_local_build(platform_key: str, *, library_loader: LibraryLoader) -> EphemerisBackend:
    errors: list[str] = []
    for path in _local_build_candidates(platform_key):
        if not path.is_file():
            continue
        try:
            return CtypesSwephAdapter(library_loader(str(path)), source=str(path))
        except (OSError, AttributeError) as exc:
            errors.append(f"{path} ({exc})")

    found = ctypes.util.find_library("swe")
    if found:
        try:
            return CtypesSwephAdapter(library_loader(found), source=found)
        except (OSError, AttributeError) as exc:
            errors.append(f"{found} ({exc})")

    detail = f": {'; '.join(errors)}" if errors else ""
    raise FileNotFoundError(f"no locally built libswe found{detail}")


def _load_swisseph_module(platform_key: str) -> EphemerisBackend:
    return SwissephModuleAdapter(swe())


def default_strategies(
    config: BridgeConfig,
    *,
    library_loader: LibraryLoader = ctypes.CDLL,
) -> tuple[LoadStrategy, ...]:
    """Return the standard prebuilt -> local build -> pyswisseph sequence."""

    return (
        LoadStrategy(
            "prebuilt",
            partial(_load_prebuilt, prebuild_dir=config.prebuild_dir, library_loader=library_loader),
        ),
        LoadStrategy("local-build", partial(_load_local_build, library_loader=library_loader)),
        LoadStrategy("pyswisseph", _load_swisseph_module),
    )


class NativeBackendLoader:
    """Resolve, and optionally retain, the native backend for this process."""

    backend_kind = "native"

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        strategies: Sequence[LoadStrategy] | None = None,
        platform_key: str | None = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self.platform_key = platform_key or get_platform_key()
        self._strategies: tuple[LoadStrategy, ...] = (
            tuple(strategies) if strategies is not None else default_strategies(self.config)
        )
        self._backend: EphemerisBackend | None = None
        self._flight: SingleFlight[EphemerisBackend] = SingleFlight()
        self.search_count = 0

    @property
    def strategies(self) -> tuple[LoadStrategy, ...]:
        return self._strategies

    @property
    def is_loaded(self) -> bool:
        return self._backend is not None

    def get_backend(self) -> EphemerisBackend:
        """Return the retained backend without loading."""

        if self._backend is None:
            raise BackendNotInitializedError(
                "native backend not initialised; await NativeBackendLoader.load() first"
            )
        return self._backend

    async def load(self) -> EphemerisBackend:
        """Return a working backend, running the strategy search when needed."""

        if self._backend is not None and self.config.cache_module:
            return self._backend
        return await self._flight.run(self._resolve)

    def reset(self) -> None:
        """Drop any retained handle so the next :meth:`load` searches again."""

        self._backend = None

    async def _resolve(self) -> EphemerisBackend:
        backend = await asyncio.to_thread(self._search)
        if self.config.cache_module:
            self._backend = backend
        else:
            LOG.debug("Module caching disabled; native handle not retained")
        return backend

    def _search(self) -> EphemerisBackend:
        self.search_count += 1
        BACKEND_SEARCHES.labels(backend=self.backend_kind).inc()
        started = perf_counter()
        errors: list[str] = []
        try:
            for strategy in self._strategies:
                try:
                    backend = strategy.load(self.platform_key)
                except Exception as exc:
                    errors.append(f"{strategy.name}: {exc}")
                    BACKEND_LOAD_ATTEMPTS.labels(
                        backend=self.backend_kind, strategy=strategy.name, outcome="failure"
                    ).inc()
                    LOG.info(
                        "Native backend strategy '%s' failed: %s",
                        strategy.name,
                        exc,
                        extra={"err_code": "NATIVE_STRATEGY_FAILED"},
                    )
                    continue
                BACKEND_LOAD_ATTEMPTS.labels(
                    backend=self.backend_kind, strategy=strategy.name, outcome="success"
                ).inc()
                LOG.info("Native backend loaded via %s strategy", strategy.name)
                return backend
        finally:
            BACKEND_LOAD_DURATION.labels(backend=self.backend_kind).observe(perf_counter() - started)
        raise self._failure(errors)

    def _failure(self, errors: Sequence[str]) -> BackendLoadError:
        key = self.platform_key
        message = (
            f"Failed to load Swiss Ephemeris native backend for platform '{key}'. "
            f"Supported platforms: {', '.join(SUPPORTED_PLATFORMS)}. "
            f"Details: {'; '.join(errors) or 'no strategies configured'}."
        )
        if not is_supported_platform(key):
            message += f" Platform '{key}' has no official prebuild."
        if self.config.serverless:
            message += (
                f" For serverless deployments, ensure prebuilds/{key}/ is included in the "
                "deployment package."
            )
        LOG.error(message, extra={"err_code": "NATIVE_LOAD_FAILED"})
        return BackendLoadError(
            message,
            platform_key=key,
            attempts=errors,
            supported_platforms=SUPPORTED_PLATFORMS,
        )


_DEFAULT_LOADER: NativeBackendLoader | None = None


def default_loader(config: BridgeConfig | None = None) -> NativeBackendLoader:
    """Return the process-wide loader, replacing it when ``config`` differs."""

    global _DEFAULT_LOADER
    if _DEFAULT_LOADER is None or (config is not None and config != _DEFAULT_LOADER.config):
        _DEFAULT_LOADER = NativeBackendLoader(config)
    return _DEFAULT_LOADER


def reset_default_loader() -> None:
    """For tests: forget the process-wide loader and its handle."""

    global _DEFAULT_LOADER
    _DEFAULT_LOADER = None

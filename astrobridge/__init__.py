"""Swiss Ephemeris backends behind one contract.

``astrobridge`` resolves a calculation engine (a native ``libswe`` build, the
``pyswisseph`` extension or a sandboxed WebAssembly build), memoises its
results and pools ready-to-use instances for short-lived hosts.
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version as _get_version

from .cache import ResultCache, make_cache_key
from .constants import BodyId, RiseTransEvent, SiderealMode
from .contract import (
    AzAltResult,
    CalcResult,
    EngineError,
    EphemerisBackend,
    GeoPosition,
    RiseTransResult,
    is_error,
)
from .errors import (
    AstroBridgeError,
    BackendLoadError,
    BackendNotInitializedError,
    MarshalingError,
    PoolExhaustedError,
)
from .pool import InstancePool, default_pool, reset_default_pool, with_instance
from .runtime_config import BridgeConfig, RuntimeSettings, resolve_bridge_config
from .service import EphemerisService, RiseSetTransit, create_service

logging.getLogger(__name__).addHandler(logging.NullHandler())

try:
    __version__ = _get_version("astrobridge")
except PackageNotFoundError:  # pragma: no cover - metadata missing when run from a source tree
    __version__ = "0.0.0"

__all__ = [
    "AstroBridgeError",
    "AzAltResult",
    "BackendLoadError",
    "BackendNotInitializedError",
    "BodyId",
    "BridgeConfig",
    "CalcResult",
    "EngineError",
    "EphemerisBackend",
    "EphemerisService",
    "GeoPosition",
    "InstancePool",
    "MarshalingError",
    "PoolExhaustedError",
    "ResultCache",
    "RiseSetTransit",
    "RiseTransEvent",
    "RiseTransResult",
    "RuntimeSettings",
    "SiderealMode",
    "__version__",
    "create_service",
    "default_pool",
    "is_error",
    "make_cache_key",
    "reset_default_pool",
    "resolve_bridge_config",
    "with_instance",
]

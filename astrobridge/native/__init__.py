"""Process-hosted native engine backend."""

from __future__ import annotations

from .ctypes_adapter import CtypesSwephAdapter
from .loader import (
    LoadStrategy,
    NativeBackendLoader,
    default_loader,
    default_strategies,
    reset_default_loader,
)
from .module_adapter import SwissephModuleAdapter
from .platform import (
    SUPPORTED_PLATFORMS,
    PlatformInfo,
    get_platform_key,
    has_prebuilds,
    platform_info,
)

__all__ = [
    "CtypesSwephAdapter",
    "LoadStrategy",
    "NativeBackendLoader",
    "PlatformInfo",
    "SUPPORTED_PLATFORMS",
    "SwissephModuleAdapter",
    "default_loader",
    "default_strategies",
    "get_platform_key",
    "has_prebuilds",
    "platform_info",
    "reset_default_loader",
]

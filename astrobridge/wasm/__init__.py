"""WebAssembly engine backend."""

from __future__ import annotations

from .adapter import WasmAdapter
from .loader import (
    DEFAULT_WASM_PATH,
    WasmModuleLoader,
    default_loader,
    reset_default_loader,
)
from .memory import LinearMemory, ScratchArena, WasmtimeModule

__all__ = [
    "DEFAULT_WASM_PATH",
    "LinearMemory",
    "ScratchArena",
    "WasmAdapter",
    "WasmModuleLoader",
    "WasmtimeModule",
    "default_loader",
    "reset_default_loader",
]

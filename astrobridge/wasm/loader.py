"""Single-flight instantiation of the WebAssembly engine module."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from time import perf_counter

from ..concurrency import SingleFlight
from ..errors import BackendLoadError, BackendNotInitializedError
from ..observability.metrics import (
    BACKEND_LOAD_ATTEMPTS,
    BACKEND_LOAD_DURATION,
    BACKEND_SEARCHES,
)
from ..runtime_config import BridgeConfig
from .adapter import WasmAdapter
from .memory import LinearMemory, WasmtimeModule

LOG = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_WASM_PATH",
    "WASM_PLATFORM_KEY",
    "WasmModuleLoader",
    "default_loader",
    "reset_default_loader",
]

DEFAULT_WASM_PATH = Path(__file__).resolve().parent / "swisseph.wasm"
WASM_PLATFORM_KEY = "wasm32-wasi"

ModuleFactory = Callable[[Path], LinearMemory]


class WasmModuleLoader:
    """Instantiate the module once and hand out a shared :class:`WasmAdapter`.

    Concurrent first calls share one instantiation. A failed instantiation is
    not remembered, so the next :meth:`load` tries again.
    """

    backend_kind = "wasm"

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        wasm_path: Path | str | None = None,
        module_factory: ModuleFactory | None = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self.wasm_path = Path(wasm_path or self.config.wasm_path or DEFAULT_WASM_PATH)
        self._factory: ModuleFactory = module_factory or WasmtimeModule.from_file
        self._adapter: WasmAdapter | None = None
        self._flight: SingleFlight[WasmAdapter] = SingleFlight()
        self.load_count = 0

    @property
    def is_loaded(self) -> bool:
        return self._adapter is not None

    def get_adapter(self) -> WasmAdapter:
        if self._adapter is None:
            raise BackendNotInitializedError(
                "WebAssembly engine not initialised; await WasmModuleLoader.load() first"
            )
        return self._adapter

    async def load(self) -> WasmAdapter:
        if self._adapter is not None:
            return self._adapter
        return await self._flight.run(self._instantiate)

    def reset(self) -> None:
        self._adapter = None

    async def _instantiate(self) -> WasmAdapter:
        self.load_count += 1
        BACKEND_SEARCHES.labels(backend=self.backend_kind).inc()
        started = perf_counter()
        try:
            memory = await asyncio.to_thread(self._factory, self.wasm_path)
        except Exception as exc:
            BACKEND_LOAD_ATTEMPTS.labels(
                backend=self.backend_kind, strategy="wasmtime", outcome="failure"
            ).inc()
            message = f"Failed to load Swiss Ephemeris WebAssembly module from {self.wasm_path}: {exc}"
            LOG.error(message, extra={"err_code": "WASM_LOAD_FAILED"})
            raise BackendLoadError(
                message,
                platform_key=WASM_PLATFORM_KEY,
                attempts=[f"wasmtime: {exc}"],
            ) from exc
        finally:
            BACKEND_LOAD_DURATION.labels(backend=self.backend_kind).observe(perf_counter() - started)

        BACKEND_LOAD_ATTEMPTS.labels(
            backend=self.backend_kind, strategy="wasmtime", outcome="success"
        ).inc()
        LOG.info("WebAssembly engine loaded from %s", self.wasm_path)
        self._adapter = WasmAdapter(memory)
        return self._adapter


_DEFAULT_LOADER: WasmModuleLoader | None = None


def default_loader(config: BridgeConfig | None = None) -> WasmModuleLoader:
    """Return the process-wide loader, replacing it when ``config`` differs."""

    global _DEFAULT_LOADER
    if _DEFAULT_LOADER is None or (config is not None and config != _DEFAULT_LOADER.config):
        _DEFAULT_LOADER = WasmModuleLoader(config)
    return _DEFAULT_LOADER


def reset_default_loader() -> None:
    global _DEFAULT_LOADER
    _DEFAULT_LOADER = None

from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path

import pytest

from astrobridge.errors import BackendLoadError, BackendNotInitializedError
from astrobridge.runtime_config import BridgeConfig
from astrobridge.wasm import loader as loader_module
from astrobridge.wasm.adapter import WasmAdapter
from astrobridge.wasm.loader import DEFAULT_WASM_PATH, WasmModuleLoader

from ..fakes import FakeHeap


class CountingFactory:
    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.paths: list[Path] = []
        self._lock = threading.Lock()

    def __call__(self, path: Path) -> FakeHeap:
        with self._lock:
            self.paths.append(path)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise FileNotFoundError(f"{path} does not exist")
        return FakeHeap()


def test_default_path_points_inside_package() -> None:
    loader = WasmModuleLoader(module_factory=CountingFactory())
    assert loader.wasm_path == DEFAULT_WASM_PATH
    assert DEFAULT_WASM_PATH.name == "swisseph.wasm"


def test_config_path_overrides_default(tmp_path: Path) -> None:
    target = tmp_path / "custom.wasm"
    loader = WasmModuleLoader(BridgeConfig(wasm_path=target), module_factory=CountingFactory())
    assert loader.wasm_path == target


def test_concurrent_loads_instantiate_once() -> None:
    factory = CountingFactory(delay=0.05)
    loader = WasmModuleLoader(module_factory=factory)

    async def scenario():
        return await asyncio.gather(*(loader.load() for _ in range(5)))

    adapters = asyncio.run(scenario())

    assert len(factory.paths) == 1
    assert loader.load_count == 1
    assert all(adapter is adapters[0] for adapter in adapters)
    assert isinstance(adapters[0], WasmAdapter)
    assert loader.get_adapter() is adapters[0]


def test_repeat_load_is_idempotent() -> None:
    factory = CountingFactory()
    loader = WasmModuleLoader(module_factory=factory)

    first = asyncio.run(loader.load())
    second = asyncio.run(loader.load())

    assert first is second
    assert len(factory.paths) == 1


def test_failure_is_shared_and_not_retained() -> None:
    factory = CountingFactory(fail=True, delay=0.02)
    loader = WasmModuleLoader(module_factory=factory)

    async def scenario():
        return await asyncio.gather(*(loader.load() for _ in range(3)), return_exceptions=True)

    errors = asyncio.run(scenario())
    assert len(factory.paths) == 1
    assert all(isinstance(err, BackendLoadError) for err in errors)
    assert all(err is errors[0] for err in errors)
    assert "does not exist" in str(errors[0])
    assert not loader.is_loaded

    factory.fail = False
    adapter = asyncio.run(loader.load())
    assert isinstance(adapter, WasmAdapter)
    assert len(factory.paths) == 2


def test_get_adapter_before_load_raises() -> None:
    loader = WasmModuleLoader(module_factory=CountingFactory())
    with pytest.raises(BackendNotInitializedError):
        loader.get_adapter()


def test_reset_forces_new_instantiation() -> None:
    factory = CountingFactory()
    loader = WasmModuleLoader(module_factory=factory)

    first = asyncio.run(loader.load())
    loader.reset()
    second = asyncio.run(loader.load())

    assert first is not second
    assert len(factory.paths) == 2


def test_default_loader_is_shared_until_reset() -> None:
    loader_module.reset_default_loader()
    try:
        first = loader_module.default_loader()
        assert loader_module.default_loader() is first
        assert loader_module.default_loader(BridgeConfig(cache_ttl_seconds=60.0)) is not first
        loader_module.reset_default_loader()
        assert loader_module.default_loader() is not first
    finally:
        loader_module.reset_default_loader()

"""Exercise :class:`WasmtimeModule` against a tiny hand-written module."""

from __future__ import annotations

import pytest

wasmtime = pytest.importorskip("wasmtime")

from astrobridge.errors import MarshalingError  # noqa: E402
from astrobridge.wasm.adapter import WasmAdapter  # noqa: E402
from astrobridge.wasm.memory import WasmtimeModule, read_doubles, write_doubles  # noqa: E402

MODULE_WAT = """
(module
  (memory (export "memory") 1)
  (global $next (mut i32) (i32.const 1024))
  (data (i32.const 16) "2.10.03\\00")
  (func (export "malloc") (param $size i32) (result i32)
    (local $ptr i32)
    (local.set $ptr (global.get $next))
    (global.set $next
      (i32.and
        (i32.add (i32.add (global.get $next) (local.get $size)) (i32.const 7))
        (i32.const -8)))
    (local.get $ptr))
  (func (export "free") (param i32))
  (func (export "_swe_julday") (param i32 i32 i32 f64 i32) (result f64)
    (f64.const 2451545.0))
  (func (export "swe_version") (param $buf i32) (result i32)
    (memory.copy (local.get $buf) (i32.const 16) (i32.const 8))
    (local.get $buf))
)
"""


@pytest.fixture()
def module() -> WasmtimeModule:
    store = wasmtime.Store()
    compiled = wasmtime.Module(store.engine, MODULE_WAT)
    instance = wasmtime.Instance(store, compiled, [])
    return WasmtimeModule(store, instance)


def test_memory_round_trip_through_linear_memory(module: WasmtimeModule) -> None:
    pointer = module.malloc(24)
    assert pointer == 1024
    write_doubles(module, pointer, [1.5, -2.25, 3.0])
    assert read_doubles(module, pointer, 3) == (1.5, -2.25, 3.0)


def test_underscore_prefixed_exports_are_resolved(module: WasmtimeModule) -> None:
    assert module.call("swe_julday", 2000, 1, 1, 12.0, 1) == 2451545.0


def test_missing_exports_are_reported(module: WasmtimeModule) -> None:
    missing = module.missing_exports()
    assert "swe_calc_ut" in missing
    assert "malloc" not in missing
    assert "swe_julday" not in missing
    with pytest.raises(MarshalingError):
        module.call("swe_calc_ut", 0.0, 0, 0, 0, 0)


def test_out_of_range_access_raises(module: WasmtimeModule) -> None:
    with pytest.raises(MarshalingError):
        module.read(65536 - 4, 8)
    with pytest.raises(MarshalingError):
        module.write(-1, b"\0")


def test_adapter_reads_version_from_module(module: WasmtimeModule) -> None:
    assert WasmAdapter(module).version() == "2.10.03"

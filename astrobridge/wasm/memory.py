"""Linear-memory access for the WebAssembly build of the engine.

The adapter only needs five primitives from a module instance: allocate, free,
read bytes, write bytes and call an export. :class:`LinearMemory` names that
surface; :class:`WasmtimeModule` provides it on top of :mod:`wasmtime`, and
tests provide it with an in-process fake heap.
"""

from __future__ import annotations

import logging
import os
import struct
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import wasmtime

from ..errors import MarshalingError

LOG = logging.getLogger(__name__)

__all__ = [
    "DOUBLE_SIZE",
    "LinearMemory",
    "REQUIRED_EXPORTS",
    "ScratchArena",
    "WasmtimeModule",
    "read_cstring",
    "read_doubles",
    "write_doubles",
]

DOUBLE_SIZE = 8

REQUIRED_EXPORTS: tuple[str, ...] = (
    "malloc",
    "free",
    "swe_julday",
    "swe_calc_ut",
    "swe_set_ephe_path",
    "swe_set_sid_mode",
    "swe_get_ayanamsa_ut",
    "swe_rise_trans",
    "swe_azalt",
    "swe_version",
)


@runtime_checkable
class LinearMemory(Protocol):
    """Minimal view of an instantiated module and its linear memory.

    ``read`` and ``write`` raise :class:`MarshalingError` for any access that
    falls outside the current memory size.
    """

    def malloc(self, size: int) -> int:
        ...

    def free(self, pointer: int) -> None:
        ...

    def read(self, pointer: int, size: int) -> bytes:
        ...

    def write(self, pointer: int, data: bytes) -> None:
        ...

    def call(self, name: str, *args: int | float) -> Any:
        ...


def write_doubles(memory: LinearMemory, pointer: int, values: Sequence[float]) -> None:
    """Store ``values`` as consecutive little-endian doubles at ``pointer``."""

    memory.write(pointer, struct.pack(f"<{len(values)}d", *(float(v) for v in values)))


def read_doubles(memory: LinearMemory, pointer: int, count: int) -> tuple[float, ...]:
    raw = memory.read(pointer, count * DOUBLE_SIZE)
    if len(raw) != count * DOUBLE_SIZE:
        raise MarshalingError(
            f"short read at {pointer:#x}: wanted {count * DOUBLE_SIZE} bytes, got {len(raw)}"
        )
    return struct.unpack(f"<{count}d", raw)


def read_cstring(memory: LinearMemory, pointer: int, max_size: int) -> str:
    """Decode a NUL-terminated UTF-8 string of at most ``max_size`` bytes."""

    raw = memory.read(pointer, max_size).split(b"\0", 1)[0]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MarshalingError(f"undecodable string at {pointer:#x}: {exc}") from exc


class ScratchArena:
    """Per-call allocations that are always returned to the module heap.

    Every pointer handed out by :meth:`alloc` is freed when the ``with`` block
    exits, whether it returns normally or raises. A null pointer from
    ``malloc`` raises :class:`MarshalingError`.
    """

    __slots__ = ("_memory", "_pointers", "operation")

    def __init__(self, memory: LinearMemory, *, operation: str | None = None) -> None:
        self._memory = memory
        self._pointers: list[int] = []
        self.operation = operation

    def __enter__(self) -> "ScratchArena":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @property
    def outstanding(self) -> int:
        return len(self._pointers)

    def alloc(self, size: int) -> int:
        pointer = self._memory.malloc(size)
        if not pointer:
            raise MarshalingError(
                f"module allocation of {size} bytes failed", operation=self.operation
            )
        self._pointers.append(pointer)
        return pointer

    def alloc_zeroed(self, size: int) -> int:
        pointer = self.alloc(size)
        self._memory.write(pointer, bytes(size))
        return pointer

    def alloc_doubles(self, count: int, values: Sequence[float] | None = None) -> int:
        pointer = self.alloc(count * DOUBLE_SIZE)
        write_doubles(self._memory, pointer, values if values is not None else [0.0] * count)
        return pointer

    def alloc_cstring(self, text: str, *, min_size: int = 0) -> int:
        """Copy ``text`` into module memory as UTF-8 with a trailing NUL."""

        encoded = text.encode("utf-8") + b"\0"
        size = max(len(encoded), min_size)
        pointer = self.alloc(size)
        self._memory.write(pointer, encoded.ljust(size, b"\0"))
        return pointer

    def read_doubles(self, pointer: int, count: int) -> tuple[float, ...]:
        return read_doubles(self._memory, pointer, count)

    def read_cstring(self, pointer: int, max_size: int) -> str:
        return read_cstring(self._memory, pointer, max_size)

    def release(self) -> None:
        """Free every pointer, then re-raise the first ``free`` failure if any."""

        first_error: MarshalingError | None = None
        while self._pointers:
            pointer = self._pointers.pop()
            try:
                self._memory.free(pointer)
            except MarshalingError as exc:
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error


class WasmtimeModule:
    """:class:`LinearMemory` over a WASI instance hosted by :mod:`wasmtime`.

    Exports are looked up by plain name first and then with the leading
    underscore Emscripten adds to C symbols.
    """

    def __init__(self, store: wasmtime.Store, instance: wasmtime.Instance, *, source: str | None = None) -> None:
        self._store = store
        self._exports = instance.exports(store)
        self._functions: dict[str, wasmtime.Func] = {}
        self.source = source

        memory = self._lookup("memory")
        if not isinstance(memory, wasmtime.Memory):
            raise ValueError("module does not export its linear memory as 'memory'")
        self._memory = memory

    @classmethod
    def from_file(
        cls,
        path: os.PathLike[str] | str,
        *,
        preopen_dirs: Mapping[str, str] | None = None,
    ) -> "WasmtimeModule":
        """Compile and instantiate the module at ``path``.

        ``preopen_dirs`` maps host directories to guest paths so that the
        engine can open ephemeris files from inside the sandbox.
        """

        engine = wasmtime.Engine()
        store = wasmtime.Store(engine)
        wasi = wasmtime.WasiConfig()
        wasi.inherit_stdout()
        wasi.inherit_stderr()
        for host_dir, guest_dir in (preopen_dirs or {}).items():
            wasi.preopen_dir(host_dir, guest_dir)
        store.set_wasi(wasi)

        linker = wasmtime.Linker(engine)
        linker.define_wasi()
        module = wasmtime.Module.from_file(engine, str(Path(path)))
        instance = linker.instantiate(store, module)

        wrapped = cls(store, instance, source=str(path))
        missing = wrapped.missing_exports()
        if missing:
            raise ValueError(f"module is missing required exports: {', '.join(missing)}")

        # WASI reactors must run their constructors before any other export.
        initialize = wrapped._lookup("_initialize")
        if isinstance(initialize, wasmtime.Func):
            initialize(store)
        LOG.debug("Instantiated WebAssembly engine from %s", path)
        return wrapped

    def _lookup(self, name: str) -> Any | None:
        for candidate in (name, f"_{name}"):
            try:
                return self._exports[candidate]
            except KeyError:
                continue
        return None

    def _function(self, name: str) -> wasmtime.Func:
        func = self._functions.get(name)
        if func is None:
            found = self._lookup(name)
            if not isinstance(found, wasmtime.Func):
                raise MarshalingError(f"module has no exported function '{name}'", operation=name)
            func = self._functions[name] = found
        return func

    def missing_exports(self, names: Sequence[str] = REQUIRED_EXPORTS) -> list[str]:
        return [name for name in names if not isinstance(self._lookup(name), wasmtime.Func)]

    def call(self, name: str, *args: int | float) -> Any:
        func = self._function(name)
        try:
            return func(self._store, *args)
        except (wasmtime.Trap, wasmtime.WasmtimeError) as exc:
            raise MarshalingError(f"{name} trapped: {exc}", operation=name) from exc

    def malloc(self, size: int) -> int:
        return int(self.call("malloc", int(size)))

    def free(self, pointer: int) -> None:
        self.call("free", int(pointer))

    def _check_bounds(self, pointer: int, size: int) -> None:
        limit = self._memory.data_len(self._store)
        if pointer < 0 or size < 0 or pointer + size > limit:
            raise MarshalingError(
                f"access of {size} bytes at {pointer:#x} outside linear memory ({limit} bytes)"
            )

    def read(self, pointer: int, size: int) -> bytes:
        self._check_bounds(pointer, size)
        return bytes(self._memory.read(self._store, pointer, pointer + size))

    def write(self, pointer: int, data: bytes) -> None:
        self._check_bounds(pointer, len(data))
        self._memory.write(self._store, data, pointer)

"""Backend contract over the WebAssembly build of the engine."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..constants import ERROR_BUFFER_SIZE, RISE_TRANS_NOT_FOUND
from ..contract import (
    AzAltOutcome,
    AzAltResult,
    CalcOutcome,
    CalcResult,
    EngineError,
    RiseTransOutcome,
    RiseTransResult,
    as_triple,
)
from ..errors import MarshalingError
from ..observability.metrics import MARSHALING_FAILURES
from .memory import LinearMemory, ScratchArena

LOG = logging.getLogger(__name__)

__all__ = ["WasmAdapter"]


class WasmAdapter:
    """Marshal contract calls through the module's linear memory.

    Every structured call allocates its buffers inside a :class:`ScratchArena`
    so they are released before the call returns, on success and on failure.
    Marshaling faults in ``calc_position``, ``rise_transit`` and ``az_alt``
    surface as ``EngineError(kind="marshaling")``. The setters and
    :meth:`version` have no error variant and raise :class:`MarshalingError`.
    """

    name = "wasm"

    def __init__(self, memory: LinearMemory) -> None:
        self._memory = memory

    @property
    def memory(self) -> LinearMemory:
        return self._memory

    def _marshaling_error(self, operation: str, exc: MarshalingError) -> EngineError:
        MARSHALING_FAILURES.labels(operation=operation).inc()
        LOG.warning(
            "WebAssembly marshaling failed during %s: %s",
            operation,
            exc,
            extra={"err_code": "WASM_MARSHALING"},
        )
        return EngineError(operation, str(exc), kind="marshaling")

    def calc_position(self, day_number: float, body_id: int, flags: int) -> CalcOutcome:
        try:
            with ScratchArena(self._memory, operation="calc_position") as arena:
                serr = arena.alloc_zeroed(ERROR_BUFFER_SIZE)
                xx = arena.alloc_doubles(6)
                ret = self._memory.call(
                    "swe_calc_ut", float(day_number), int(body_id), int(flags), xx, serr
                )
                if ret < 0:
                    return EngineError("calc_position", arena.read_cstring(serr, ERROR_BUFFER_SIZE))
                return CalcResult.from_sequence(arena.read_doubles(xx, 6))
        except MarshalingError as exc:
            return self._marshaling_error("calc_position", exc)

    def rise_transit(
        self,
        day_number: float,
        body_id: int,
        star_name: str | None,
        ephe_flags: int,
        event: int,
        geo_position: Sequence[float],
        pressure: float,
        temperature: float,
    ) -> RiseTransOutcome:
        try:
            with ScratchArena(self._memory, operation="rise_transit") as arena:
                serr = arena.alloc_zeroed(ERROR_BUFFER_SIZE)
                tret = arena.alloc_doubles(8)
                geopos = arena.alloc_doubles(3, as_triple(geo_position))
                # The engine copies the resolved star name back into this buffer.
                starname = (
                    arena.alloc_cstring(star_name, min_size=ERROR_BUFFER_SIZE) if star_name else 0
                )
                ret = self._memory.call(
                    "swe_rise_trans",
                    float(day_number),
                    int(body_id),
                    starname,
                    int(ephe_flags),
                    int(event),
                    geopos,
                    float(pressure),
                    float(temperature),
                    tret,
                    serr,
                )
                if ret == RISE_TRANS_NOT_FOUND:
                    return RiseTransResult(transit_time=None, flag=ret)
                if ret < 0:
                    return EngineError("rise_transit", arena.read_cstring(serr, ERROR_BUFFER_SIZE))
                return RiseTransResult(transit_time=arena.read_doubles(tret, 1)[0], flag=int(ret))
        except MarshalingError as exc:
            return self._marshaling_error("rise_transit", exc)

    def az_alt(
        self,
        day_number: float,
        convert_flag: int,
        geo_position: Sequence[float],
        pressure: float,
        temperature: float,
        ecliptic_input: Sequence[float],
    ) -> AzAltOutcome:
        try:
            with ScratchArena(self._memory, operation="az_alt") as arena:
                xaz = arena.alloc_doubles(3)
                geopos = arena.alloc_doubles(3, as_triple(geo_position))
                xin = arena.alloc_doubles(3, as_triple(ecliptic_input))
                self._memory.call(
                    "swe_azalt",
                    float(day_number),
                    int(convert_flag),
                    geopos,
                    float(pressure),
                    float(temperature),
                    xin,
                    xaz,
                )
                azimuth, altitude, apparent = arena.read_doubles(xaz, 3)
                return AzAltResult(azimuth=azimuth, altitude=altitude, apparent_altitude=apparent)
        except MarshalingError as exc:
            return self._marshaling_error("az_alt", exc)

    def set_sidereal_mode(self, mode: int, t0: float, ayanamsa_at_t0: float) -> None:
        self._memory.call("swe_set_sid_mode", int(mode), float(t0), float(ayanamsa_at_t0))

    def ayanamsa(self, day_number: float) -> float:
        return float(self._memory.call("swe_get_ayanamsa_ut", float(day_number)))

    def day_number(
        self,
        year: int,
        month: int,
        day: int,
        hour_fraction: float,
        calendar_flag: int,
    ) -> float:
        return float(
            self._memory.call(
                "swe_julday", int(year), int(month), int(day), float(hour_fraction), int(calendar_flag)
            )
        )

    def set_ephemeris_path(self, path: str) -> None:
        with ScratchArena(self._memory, operation="set_ephemeris_path") as arena:
            self._memory.call("swe_set_ephe_path", arena.alloc_cstring(path))

    def version(self) -> str:
        with ScratchArena(self._memory, operation="version") as arena:
            buffer = arena.alloc_zeroed(ERROR_BUFFER_SIZE)
            self._memory.call("swe_version", buffer)
            return arena.read_cstring(buffer, ERROR_BUFFER_SIZE)

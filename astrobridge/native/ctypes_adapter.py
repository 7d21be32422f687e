"""Contract adapter over a natively loaded Swiss Ephemeris shared library."""

from __future__ import annotations

import ctypes
import logging
from collections.abc import Sequence
from typing import Any

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

LOG = logging.getLogger(__name__)

__all__ = ["CtypesSwephAdapter", "REQUIRED_SYMBOLS"]

_DoubleArray3 = ctypes.c_double * 3
_DoubleArray6 = ctypes.c_double * 6
_DoubleArray8 = ctypes.c_double * 8
_PDouble = ctypes.POINTER(ctypes.c_double)

_SIGNATURES: dict[str, tuple[Any, list[Any]]] = {
    "swe_julday": (
        ctypes.c_double,
        [ctypes.c_int, ctypes.c_int, ctypes.c_int, ctypes.c_double, ctypes.c_int],
    ),
    "swe_calc_ut": (
        ctypes.c_int32,
        [ctypes.c_double, ctypes.c_int32, ctypes.c_int32, _PDouble, ctypes.c_char_p],
    ),
    "swe_set_ephe_path": (None, [ctypes.c_char_p]),
    "swe_set_sid_mode": (None, [ctypes.c_int32, ctypes.c_double, ctypes.c_double]),
    "swe_get_ayanamsa_ut": (ctypes.c_double, [ctypes.c_double]),
    "swe_rise_trans": (
        ctypes.c_int32,
        [
            ctypes.c_double,
            ctypes.c_int32,
            ctypes.c_char_p,
            ctypes.c_int32,
            ctypes.c_int32,
            _PDouble,
            ctypes.c_double,
            ctypes.c_double,
            _PDouble,
            ctypes.c_char_p,
        ],
    ),
    "swe_azalt": (
        None,
        [
            ctypes.c_double,
            ctypes.c_int32,
            _PDouble,
            ctypes.c_double,
            ctypes.c_double,
            _PDouble,
            _PDouble,
        ],
    ),
    "swe_version": (ctypes.c_char_p, [ctypes.c_char_p]),
}

REQUIRED_SYMBOLS: tuple[str, ...] = tuple(_SIGNATURES)


def _bind(library: Any) -> None:
    """Declare C signatures; raises ``AttributeError`` for a missing export."""

    for symbol, (restype, argtypes) in _SIGNATURES.items():
        func = getattr(library, symbol)
        func.restype = restype
        func.argtypes = argtypes


def _decode(raw: bytes | None) -> str:
    if not raw:
        return ""
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


class CtypesSwephAdapter:
    """Implements the backend contract by calling ``libswe`` through :mod:`ctypes`.

    Output buffers are ctypes arrays owned by the Python heap, so nothing needs
    to be released explicitly after a call.
    """

    name = "native"

    def __init__(self, library: Any, *, source: str | None = None) -> None:
        _bind(library)
        self._lib = library
        self.source = source

    def __repr__(self) -> str:
        return f"CtypesSwephAdapter(source={self.source!r})"

    def calc_position(self, day_number: float, body_id: int, flags: int) -> CalcOutcome:
        xx = _DoubleArray6()
        serr = ctypes.create_string_buffer(ERROR_BUFFER_SIZE)
        ret = self._lib.swe_calc_ut(float(day_number), int(body_id), int(flags), xx, serr)
        if ret < 0:
            return EngineError("calc_position", _decode(serr.raw))
        return CalcResult.from_sequence(list(xx))

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
        geopos = _DoubleArray3(*as_triple(geo_position))
        tret = _DoubleArray8()
        serr = ctypes.create_string_buffer(ERROR_BUFFER_SIZE)
        starname = None
        if star_name:
            encoded = star_name.encode("utf-8")
            # The engine writes the resolved star name back into this buffer.
            starname = ctypes.create_string_buffer(encoded, max(len(encoded) + 1, ERROR_BUFFER_SIZE))
        ret = self._lib.swe_rise_trans(
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
            return EngineError("rise_transit", _decode(serr.raw))
        return RiseTransResult(transit_time=float(tret[0]), flag=ret)

    def az_alt(
        self,
        day_number: float,
        convert_flag: int,
        geo_position: Sequence[float],
        pressure: float,
        temperature: float,
        ecliptic_input: Sequence[float],
    ) -> AzAltOutcome:
        geopos = _DoubleArray3(*as_triple(geo_position))
        xin = _DoubleArray3(*as_triple(ecliptic_input))
        xaz = _DoubleArray3()
        self._lib.swe_azalt(
            float(day_number),
            int(convert_flag),
            geopos,
            float(pressure),
            float(temperature),
            xin,
            xaz,
        )
        return AzAltResult(azimuth=xaz[0], altitude=xaz[1], apparent_altitude=xaz[2])

    def set_sidereal_mode(self, mode: int, t0: float, ayanamsa_at_t0: float) -> None:
        self._lib.swe_set_sid_mode(int(mode), float(t0), float(ayanamsa_at_t0))

    def ayanamsa(self, day_number: float) -> float:
        return float(self._lib.swe_get_ayanamsa_ut(float(day_number)))

    def day_number(
        self,
        year: int,
        month: int,
        day: int,
        hour_fraction: float,
        calendar_flag: int,
    ) -> float:
        return float(
            self._lib.swe_julday(int(year), int(month), int(day), float(hour_fraction), int(calendar_flag))
        )

    def set_ephemeris_path(self, path: str) -> None:
        LOG.debug("Setting native ephemeris path to %s", path)
        self._lib.swe_set_ephe_path(path.encode("utf-8"))

    def version(self) -> str:
        buffer = ctypes.create_string_buffer(ERROR_BUFFER_SIZE)
        self._lib.swe_version(buffer)
        return _decode(buffer.raw)

"""Contract adapter over the ``pyswisseph`` extension module."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from types import ModuleType
from typing import Any

from ..constants import RISE_TRANS_NOT_FOUND
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

__all__ = ["SwissephModuleAdapter"]


class SwissephModuleAdapter:
    """Implements the backend contract on top of :mod:`swisseph`.

    ``pyswisseph`` raises ``swisseph.Error`` where the C API would return a
    negative code; those exceptions are folded back into :class:`EngineError`.
    """

    name = "pyswisseph"

    def __init__(self, module: ModuleType | Any) -> None:
        self._swe = module
        self._error_type: type[BaseException] = getattr(module, "Error", RuntimeError)

    def __repr__(self) -> str:
        return f"SwissephModuleAdapter(version={self.version()!r})"

    def calc_position(self, day_number: float, body_id: int, flags: int) -> CalcOutcome:
        try:
            values, _ret_flags = self._swe.calc_ut(float(day_number), int(body_id), int(flags))
        except self._error_type as exc:
            return EngineError("calc_position", str(exc))
        return CalcResult.from_sequence(values)

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
        body: int | str = star_name if star_name else int(body_id)
        try:
            ret, tret = self._swe.rise_trans(
                float(day_number),
                body,
                int(event),
                as_triple(geo_position),
                float(pressure),
                float(temperature),
                int(ephe_flags),
            )
        except self._error_type as exc:
            return EngineError("rise_transit", str(exc))
        if ret == RISE_TRANS_NOT_FOUND:
            return RiseTransResult(transit_time=None, flag=ret)
        if ret < 0:
            return EngineError("rise_transit", f"engine returned {ret}")
        return RiseTransResult(transit_time=float(tret[0]), flag=int(ret))

    def az_alt(
        self,
        day_number: float,
        convert_flag: int,
        geo_position: Sequence[float],
        pressure: float,
        temperature: float,
        ecliptic_input: Sequence[float],
    ) -> AzAltOutcome:
        azimuth, altitude, apparent = self._swe.azalt(
            float(day_number),
            int(convert_flag),
            as_triple(geo_position),
            float(pressure),
            float(temperature),
            as_triple(ecliptic_input),
        )
        return AzAltResult(
            azimuth=float(azimuth), altitude=float(altitude), apparent_altitude=float(apparent)
        )

    def set_sidereal_mode(self, mode: int, t0: float, ayanamsa_at_t0: float) -> None:
        self._swe.set_sid_mode(int(mode), float(t0), float(ayanamsa_at_t0))

    def ayanamsa(self, day_number: float) -> float:
        return float(self._swe.get_ayanamsa_ut(float(day_number)))

    def day_number(
        self,
        year: int,
        month: int,
        day: int,
        hour_fraction: float,
        calendar_flag: int,
    ) -> float:
        return float(
            self._swe.julday(int(year), int(month), int(day), float(hour_fraction), int(calendar_flag))
        )

    def set_ephemeris_path(self, path: str) -> None:
        LOG.debug("Setting pyswisseph ephemeris path to %s", path)
        self._swe.set_ephe_path(path)

    def version(self) -> str:
        raw = getattr(self._swe, "version", "")
        return str(raw() if callable(raw) else raw)

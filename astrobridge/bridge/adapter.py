"""Backend contract over a host-provided engine bridge.

Embedding hosts (mobile runtimes, plugin hosts) expose the engine as an
object with ``swe_*`` methods that return plain mappings. Failures are reported
in-band through an ``error`` key. Field names follow the host's camelCase wire
format and are translated here exactly once.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

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

__all__ = ["HostBridgeAdapter"]

_CALC_FIELDS = (
    "longitude",
    "latitude",
    "distance",
    "longitudeSpeed",
    "latitudeSpeed",
    "distanceSpeed",
)


def _error_of(payload: Mapping[str, Any]) -> str | None:
    error = payload.get("error")
    return str(error) if error else None


class HostBridgeAdapter:
    """Translate mapping-shaped bridge responses into contract results."""

    name = "host-bridge"

    def __init__(self, bridge: Any) -> None:
        self._bridge = bridge

    def calc_position(self, day_number: float, body_id: int, flags: int) -> CalcOutcome:
        payload = self._bridge.swe_calc_ut(float(day_number), int(body_id), int(flags))
        error = _error_of(payload)
        if error:
            return EngineError("calc_position", error)
        try:
            return CalcResult.from_sequence([payload[key] for key in _CALC_FIELDS])
        except KeyError as exc:
            return EngineError("calc_position", f"bridge response missing field {exc}")

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
        payload = self._bridge.swe_rise_trans(
            float(day_number),
            int(body_id),
            star_name or "",
            int(ephe_flags),
            int(event),
            list(as_triple(geo_position)),
            float(pressure),
            float(temperature),
        )
        error = _error_of(payload)
        if error:
            return EngineError("rise_transit", error)
        transit = payload.get("transitTime")
        return RiseTransResult(
            transit_time=float(transit) if transit is not None else None,
            flag=int(payload.get("flag", 0)),
        )

    def az_alt(
        self,
        day_number: float,
        convert_flag: int,
        geo_position: Sequence[float],
        pressure: float,
        temperature: float,
        ecliptic_input: Sequence[float],
    ) -> AzAltOutcome:
        payload = self._bridge.swe_azalt(
            float(day_number),
            int(convert_flag),
            list(as_triple(geo_position)),
            float(pressure),
            float(temperature),
            list(as_triple(ecliptic_input)),
        )
        error = _error_of(payload)
        if error:
            return EngineError("az_alt", error)
        apparent = payload.get("apparentAltitude")
        try:
            return AzAltResult(
                azimuth=float(payload["azimuth"]),
                altitude=float(payload["altitude"]),
                apparent_altitude=float(apparent) if apparent is not None else None,
            )
        except KeyError as exc:
            return EngineError("az_alt", f"bridge response missing field {exc}")

    def set_sidereal_mode(self, mode: int, t0: float, ayanamsa_at_t0: float) -> None:
        self._bridge.swe_set_sid_mode(int(mode), float(t0), float(ayanamsa_at_t0))

    def ayanamsa(self, day_number: float) -> float:
        return float(self._bridge.swe_get_ayanamsa_ut(float(day_number)))

    def day_number(
        self,
        year: int,
        month: int,
        day: int,
        hour_fraction: float,
        calendar_flag: int,
    ) -> float:
        return float(
            self._bridge.swe_julday(int(year), int(month), int(day), float(hour_fraction), int(calendar_flag))
        )

    def set_ephemeris_path(self, path: str) -> None:
        LOG.debug("Forwarding ephemeris path %s to host bridge", path)
        self._bridge.swe_set_ephe_path(path)

    def version(self) -> str:
        return str(self._bridge.swe_version())

"""Backend plus result cache, the unit handed out by the instance pool."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal, Protocol

from .cache import ResultCache, make_cache_key
from .constants import (
    JULIAN_UNIX_EPOCH,
    SE_CALC_MTRANSIT,
    SE_CALC_RISE,
    SE_CALC_SET,
    SE_EQU2HOR,
    SE_GREG_CAL,
    SEFLG_EQUATORIAL,
    SEFLG_SIDEREAL,
    SEFLG_SPEED,
    SEFLG_SWIEPH,
)
from .contract import (
    AzAltOutcome,
    CalcOutcome,
    EngineError,
    EphemerisBackend,
    RiseTransOutcome,
    as_triple,
    is_error,
)
from .ephemeris.utils import get_se_ephe_path
from .runtime_config import BridgeConfig, resolve_bridge_config

LOG = logging.getLogger(__name__)

__all__ = [
    "BackendLoader",
    "EphemerisService",
    "RiseSetTransit",
    "create_service",
    "datetime_for",
    "day_number_parts",
]

DEFAULT_CALC_FLAGS = SEFLG_SWIEPH | SEFLG_SPEED
SECONDS_PER_DAY = 86400.0


class BackendLoader(Protocol):
    def load(self) -> Awaitable[EphemerisBackend]:
        ...


@dataclass(frozen=True, slots=True)
class RiseSetTransit:
    """Day numbers (UT) of the next rise, set and upper meridian transit.

    Events that do not happen for the location and date (polar day or night)
    are ``None``.
    """

    rise: float | None
    set: float | None
    transit: float | None
    transit_altitude: float | None = None


def day_number_parts(moment: datetime) -> tuple[int, int, int, float]:
    """Split ``moment`` into UTC ``(year, month, day, hour_fraction)``.

    Naive datetimes are taken to be UTC already.
    """

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    hours = (
        moment.hour
        + moment.minute / 60.0
        + (moment.second + moment.microsecond / 1_000_000) / 3600.0
    )
    return moment.year, moment.month, moment.day, hours


def datetime_for(day_number: float) -> datetime:
    """Return the UTC datetime for a Julian day number."""

    return datetime.fromtimestamp((day_number - JULIAN_UNIX_EPOCH) * SECONDS_PER_DAY, tz=timezone.utc)


class EphemerisService:
    """Cache-aware facade over one :class:`EphemerisBackend`.

    Position, rise/transit and az/alt results are memoised; error variants
    never are. Sidereal positions are keyed on the sidereal mode last set
    through this service. Sidereal mode and ephemeris path are process-global
    engine state, so callers mixing modes must serialise those calls themselves.
    """

    def __init__(self, backend: EphemerisBackend, cache: ResultCache[object] | None = None) -> None:
        self._backend = backend
        self._cache: ResultCache[object] = cache if cache is not None else ResultCache(name=backend.name)
        self._sidereal: tuple[int, float, float] | None = None

    def __repr__(self) -> str:
        return f"EphemerisService(backend={self._backend.name!r}, cached={len(self._cache)})"

    @property
    def backend(self) -> EphemerisBackend:
        return self._backend

    @property
    def cache(self) -> ResultCache[object]:
        return self._cache

    def calc_position(self, day_number: float, body_id: int, flags: int = DEFAULT_CALC_FLAGS) -> CalcOutcome:
        options: dict[str, object] = {"body": int(body_id), "flags": int(flags)}
        if flags & SEFLG_SIDEREAL:
            options["sidereal"] = self._sidereal
        key = make_cache_key("calc_position", day_number, options)
        cached = self._cache.get(key)
        if cached is not None:
            return cached  # type: ignore[return-value]
        result = self._backend.calc_position(day_number, body_id, flags)
        if not is_error(result):
            self._cache.set(key, result)
        return result

    def rise_transit(
        self,
        day_number: float,
        body_id: int,
        star_name: str | None,
        ephe_flags: int,
        event: int,
        geo_position: Sequence[float],
        pressure: float = 0.0,
        temperature: float = 0.0,
    ) -> RiseTransOutcome:
        key = make_cache_key(
            "rise_transit",
            day_number,
            {
                "body": int(body_id),
                "star": star_name or "",
                "flags": int(ephe_flags),
                "event": int(event),
                "geo": as_triple(geo_position),
                "pressure": float(pressure),
                "temperature": float(temperature),
            },
        )
        cached = self._cache.get(key)
        if cached is not None:
            return cached  # type: ignore[return-value]
        result = self._backend.rise_transit(
            day_number, body_id, star_name, ephe_flags, event, geo_position, pressure, temperature
        )
        if not is_error(result):
            self._cache.set(key, result)
        return result

    def az_alt(
        self,
        day_number: float,
        convert_flag: int,
        geo_position: Sequence[float],
        pressure: float,
        temperature: float,
        ecliptic_input: Sequence[float],
    ) -> AzAltOutcome:
        key = make_cache_key(
            "az_alt",
            day_number,
            {
                "convert": int(convert_flag),
                "geo": as_triple(geo_position),
                "pressure": float(pressure),
                "temperature": float(temperature),
                "input": as_triple(ecliptic_input),
            },
        )
        cached = self._cache.get(key)
        if cached is not None:
            return cached  # type: ignore[return-value]
        result = self._backend.az_alt(
            day_number, convert_flag, geo_position, pressure, temperature, ecliptic_input
        )
        if not is_error(result):
            self._cache.set(key, result)
        return result

    def rise_set_transit(
        self,
        day_number: float,
        body_id: int,
        geo_position: Sequence[float],
        *,
        star_name: str | None = None,
        ephe_flags: int = SEFLG_SWIEPH,
        pressure: float = 0.0,
        temperature: float = 0.0,
    ) -> RiseSetTransit | EngineError:
        """Search rise, set and upper transit following ``day_number``.

        The altitude at transit is filled in when the transit exists and the
        body's equatorial position can be computed.
        """

        times: dict[str, float | None] = {}
        for label, event in (("rise", SE_CALC_RISE), ("set", SE_CALC_SET), ("transit", SE_CALC_MTRANSIT)):
            outcome = self.rise_transit(
                day_number, body_id, star_name, ephe_flags, event, geo_position, pressure, temperature
            )
            if isinstance(outcome, EngineError):
                return outcome
            times[label] = outcome.transit_time

        transit_altitude = None
        transit = times["transit"]
        if transit is not None and not star_name:
            equatorial = self.calc_position(transit, body_id, ephe_flags | SEFLG_EQUATORIAL)
            if isinstance(equatorial, EngineError):
                LOG.debug("Transit altitude unavailable: %s", equatorial)
            else:
                horizontal = self.az_alt(
                    transit,
                    SE_EQU2HOR,
                    geo_position,
                    pressure,
                    temperature,
                    (equatorial.longitude, equatorial.latitude, equatorial.distance),
                )
                if not isinstance(horizontal, EngineError):
                    transit_altitude = horizontal.altitude

        return RiseSetTransit(
            rise=times["rise"],
            set=times["set"],
            transit=transit,
            transit_altitude=transit_altitude,
        )

    def ayanamsa(self, day_number: float, mode: int | None = None) -> float:
        """Return the ayanamsa at ``day_number``, switching sidereal mode first if given."""

        if mode is not None:
            self.set_sidereal_mode(int(mode))
        return self._backend.ayanamsa(day_number)

    def set_sidereal_mode(self, mode: int, t0: float = 0.0, ayanamsa_at_t0: float = 0.0) -> None:
        self._backend.set_sidereal_mode(mode, t0, ayanamsa_at_t0)
        # Sidereal positions are keyed on the mode that produced them.
        self._sidereal = (int(mode), float(t0), float(ayanamsa_at_t0))

    def day_number(
        self,
        year: int,
        month: int,
        day: int,
        hour_fraction: float = 0.0,
        calendar_flag: int = SE_GREG_CAL,
    ) -> float:
        return self._backend.day_number(year, month, day, hour_fraction, calendar_flag)

    def day_number_for(self, moment: datetime) -> float:
        """Gregorian Julian day number (UT) for ``moment``."""

        year, month, day, hours = day_number_parts(moment)
        return self._backend.day_number(year, month, day, hours, SE_GREG_CAL)

    def set_ephemeris_path(self, path: str) -> None:
        self._backend.set_ephemeris_path(path)
        # Results computed against other data files must not be served again.
        self._cache.clear()

    def version(self) -> str:
        return self._backend.version()

    def clear_caches(self) -> None:
        self._cache.clear()

    def set_caching(self, enabled: bool) -> None:
        self._cache.set_enabled(enabled)


def _resolve_loader(kind: str, config: BridgeConfig) -> BackendLoader:
    if kind == "native":
        from .native.loader import default_loader

        return default_loader(config)
    if kind == "wasm":
        from .wasm.loader import default_loader as default_wasm_loader

        return default_wasm_loader(config)
    raise ValueError(f"unknown backend {kind!r}; expected 'native' or 'wasm'")


async def create_service(
    config: BridgeConfig | None = None,
    *,
    backend: Literal["native", "wasm"] = "native",
    loader: BackendLoader | None = None,
) -> EphemerisService:
    """Load a backend and wrap it with a result cache sized from ``config``.

    The ephemeris path comes from ``config.ephe_path`` when set, otherwise
    from data directory discovery. Without either the engine keeps its
    built-in default.
    """

    config = config or resolve_bridge_config()
    engine = await (loader or _resolve_loader(backend, config)).load()

    ephe_path = config.ephe_path or get_se_ephe_path()
    if ephe_path:
        engine.set_ephemeris_path(ephe_path)
    else:
        LOG.info(
            "No Swiss ephemeris data directory found; engine uses its built-in fallback",
            extra={"err_code": "EPHE_PATH_MISSING"},
        )

    cache: ResultCache[object] = ResultCache(
        max_entries=config.cache_max_entries,
        ttl=config.cache_ttl_seconds,
        enabled=config.result_cache_enabled,
        name=engine.name,
    )
    return EphemerisService(engine, cache)

"""Operation contract implemented by every ephemeris backend.

Each backend (native shared library, ``pyswisseph`` module, WebAssembly module,
host bridge) exposes the same eight primitives with identical input and output
shapes. Flags are opaque bitmasks passed straight to the engine.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, NamedTuple, Protocol, TypeAlias, runtime_checkable

__all__ = [
    "AzAltOutcome",
    "AzAltResult",
    "CalcOutcome",
    "CalcResult",
    "EngineError",
    "EphemerisBackend",
    "GeoPosition",
    "RiseTransOutcome",
    "RiseTransResult",
    "as_triple",
    "is_error",
]

ErrorKind = Literal["engine", "marshaling"]


class GeoPosition(NamedTuple):
    """Observer position as passed to the engine (``geopos[3]``)."""

    longitude: float
    latitude: float
    altitude: float = 0.0


@dataclass(frozen=True, slots=True)
class CalcResult:
    """Ecliptic (or flag-selected) coordinates and their daily speeds."""

    longitude: float
    latitude: float
    distance: float
    longitude_speed: float
    latitude_speed: float
    distance_speed: float

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "CalcResult":
        """Build a result from the engine's ``xx[6]`` output array."""

        if len(values) < 6:
            raise ValueError(f"expected 6 position values, received {len(values)}")
        return cls(*(float(v) for v in values[:6]))

    def as_tuple(self) -> tuple[float, float, float, float, float, float]:
        return (
            self.longitude,
            self.latitude,
            self.distance,
            self.longitude_speed,
            self.latitude_speed,
            self.distance_speed,
        )


@dataclass(frozen=True, slots=True)
class RiseTransResult:
    """Outcome of a rise/set/transit search.

    ``transit_time`` is ``None`` when the requested event does not occur (for
    example a circumpolar body); that outcome is not an error.
    """

    transit_time: float | None
    flag: int

    @property
    def found(self) -> bool:
        return self.transit_time is not None


@dataclass(frozen=True, slots=True)
class AzAltResult:
    """Horizontal coordinates returned by ``az_alt``."""

    azimuth: float
    altitude: float
    apparent_altitude: float | None = None


@dataclass(frozen=True, slots=True)
class EngineError:
    """Error variant returned (never raised) by fallible operations."""

    operation: str
    message: str
    kind: ErrorKind = "engine"

    def __str__(self) -> str:
        return f"{self.operation}: {self.message}"


CalcOutcome: TypeAlias = CalcResult | EngineError
RiseTransOutcome: TypeAlias = RiseTransResult | EngineError
AzAltOutcome: TypeAlias = AzAltResult | EngineError


def is_error(value: object) -> bool:
    """Return ``True`` when ``value`` is the error variant."""

    return isinstance(value, EngineError)


def as_triple(values: Sequence[float] | None) -> tuple[float, float, float]:
    """Return exactly three floats from ``values``, padding missing slots with zero."""

    items = list(values or ())[:3]
    padded = [float(v) if v is not None else 0.0 for v in items]
    padded.extend([0.0] * (3 - len(padded)))
    return padded[0], padded[1], padded[2]


@runtime_checkable
class EphemerisBackend(Protocol):
    """Primitive operations every backend implements."""

    name: str

    def calc_position(self, day_number: float, body_id: int, flags: int) -> CalcOutcome:
        """Compute the position of ``body_id`` at ``day_number`` (UT)."""

        ...

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
        """Search the next rise, set or transit after ``day_number``."""

        ...

    def az_alt(
        self,
        day_number: float,
        convert_flag: int,
        geo_position: Sequence[float],
        pressure: float,
        temperature: float,
        ecliptic_input: Sequence[float],
    ) -> AzAltOutcome:
        """Convert ecliptic or equatorial input into horizontal coordinates."""

        ...

    def set_sidereal_mode(self, mode: int, t0: float, ayanamsa_at_t0: float) -> None:
        ...

    def ayanamsa(self, day_number: float) -> float:
        ...

    def day_number(
        self,
        year: int,
        month: int,
        day: int,
        hour_fraction: float,
        calendar_flag: int,
    ) -> float:
        ...

    def set_ephemeris_path(self, path: str) -> None:
        ...

    def version(self) -> str:
        ...

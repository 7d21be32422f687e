"""Swiss Ephemeris flag and identifier values shared by every backend.

The values mirror ``swephexp.h`` so adapters never depend on the engine's
headers (or on a loaded module) to build flag masks.
"""

from __future__ import annotations

from enum import IntEnum, IntFlag
from typing import Final

__all__ = [
    "BodyId",
    "SiderealMode",
    "RiseTransEvent",
    "SE_JUL_CAL",
    "SE_GREG_CAL",
    "SEFLG_JPLEPH",
    "SEFLG_SWIEPH",
    "SEFLG_MOSEPH",
    "SEFLG_SPEED",
    "SEFLG_EQUATORIAL",
    "SEFLG_XYZ",
    "SEFLG_TOPOCTR",
    "SEFLG_SIDEREAL",
    "SE_CALC_RISE",
    "SE_CALC_SET",
    "SE_CALC_MTRANSIT",
    "SE_CALC_ITRANSIT",
    "SE_BIT_DISC_CENTER",
    "SE_BIT_NO_REFRACTION",
    "SE_ECL2HOR",
    "SE_EQU2HOR",
    "ERROR_BUFFER_SIZE",
    "RISE_TRANS_NOT_FOUND",
    "JULIAN_UNIX_EPOCH",
]

SE_JUL_CAL: Final[int] = 0
SE_GREG_CAL: Final[int] = 1

SEFLG_JPLEPH: Final[int] = 1
SEFLG_SWIEPH: Final[int] = 2
SEFLG_MOSEPH: Final[int] = 4
SEFLG_SPEED: Final[int] = 256
SEFLG_XYZ: Final[int] = 4 * 1024
SEFLG_EQUATORIAL: Final[int] = 2 * 1024
SEFLG_TOPOCTR: Final[int] = 32 * 1024
SEFLG_SIDEREAL: Final[int] = 64 * 1024

SE_CALC_RISE: Final[int] = 1
SE_CALC_SET: Final[int] = 2
SE_CALC_MTRANSIT: Final[int] = 4
SE_CALC_ITRANSIT: Final[int] = 8
SE_BIT_DISC_CENTER: Final[int] = 256
SE_BIT_NO_REFRACTION: Final[int] = 512

SE_ECL2HOR: Final[int] = 0
SE_EQU2HOR: Final[int] = 1

ERROR_BUFFER_SIZE: Final[int] = 256
"""Size of the ``serr`` buffer the engine writes diagnostics into (``AS_MAXCH``)."""

RISE_TRANS_NOT_FOUND: Final[int] = -2
"""``swe_rise_trans`` return code for a body that never crosses the horizon."""

JULIAN_UNIX_EPOCH: Final[float] = 2440587.5


class BodyId(IntEnum):
    """Engine body identifiers (``SE_SUN`` .. ``SE_CHIRON``)."""

    SUN = 0
    MOON = 1
    MERCURY = 2
    VENUS = 3
    MARS = 4
    JUPITER = 5
    SATURN = 6
    URANUS = 7
    NEPTUNE = 8
    PLUTO = 9
    MEAN_NODE = 10
    TRUE_NODE = 11
    MEAN_APOG = 12
    OSCU_APOG = 13
    EARTH = 14
    CHIRON = 15


class SiderealMode(IntEnum):
    """Subset of ``SE_SIDM_*`` reference systems used by calculation code."""

    FAGAN_BRADLEY = 0
    LAHIRI = 1
    DELUCE = 2
    RAMAN = 3
    USHASHASHI = 4
    KRISHNAMURTI = 5
    DJWHAL_KHUL = 6
    YUKTESHWAR = 7
    JN_BHASIN = 8
    TRUE_CITRA = 27
    TRUE_REVATI = 28
    TRUE_PUSHYA = 29
    USER = 255


class RiseTransEvent(IntFlag):
    """Event selector bits accepted by ``rise_transit``."""

    RISE = SE_CALC_RISE
    SET = SE_CALC_SET
    MTRANSIT = SE_CALC_MTRANSIT
    ITRANSIT = SE_CALC_ITRANSIT
    DISC_CENTER = SE_BIT_DISC_CENTER
    NO_REFRACTION = SE_BIT_NO_REFRACTION

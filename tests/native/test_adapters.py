from __future__ import annotations

from types import SimpleNamespace

import pytest

from astrobridge.constants import RISE_TRANS_NOT_FOUND, SE_CALC_RISE, SE_CALC_SET, SE_EQU2HOR, SEFLG_SWIEPH
from astrobridge.contract import AzAltResult, CalcResult, EngineError, EphemerisBackend, RiseTransResult
from astrobridge.native.ctypes_adapter import REQUIRED_SYMBOLS, CtypesSwephAdapter
from astrobridge.native.module_adapter import SwissephModuleAdapter

LONDON = (-0.1276, 51.5072, 11.0)
TROMSO = (18.9553, 69.6492, 0.0)


def make_fake_library(**overrides):
    """Functions shaped like the libswe exports, writing into ctypes buffers."""

    state = SimpleNamespace(ephe_path=None, sid_mode=None, star_names=[])

    def swe_calc_ut(tjd, ipl, iflag, xx, serr):
        if ipl > 22:
            serr.value = f"illegal planet number {ipl}.".encode()
            return -1
        for index, value in enumerate((ipl * 10.0, 1.0, 2.0, 0.5, 0.1, 0.01)):
            xx[index] = value
        return iflag

    def swe_rise_trans(tjd, ipl, starname, epheflag, rsmi, geopos, atpress, attemp, tret, serr):
        if starname is not None:
            state.star_names.append(starname.value.decode())
            starname.value = b"Sirius,alCMa"
        if abs(geopos[1]) > 66.56:
            return RISE_TRANS_NOT_FOUND
        if ipl < 0 and starname is None:
            serr.value = b"no body"
            return -1
        tret[0] = tjd + 0.25
        return 0

    def swe_azalt(tjd, calc_flag, geopos, atpress, attemp, xin, xaz):
        xaz[0] = xin[0] + 180.0
        xaz[1] = xin[1]
        xaz[2] = xin[1] + 0.5

    def swe_set_ephe_path(path):
        state.ephe_path = path

    def swe_set_sid_mode(mode, t0, ayan_t0):
        state.sid_mode = (mode, t0, ayan_t0)

    def swe_version(buffer):
        buffer.value = b"2.10.03"
        return buffer

    functions = {
        "swe_julday": lambda y, m, d, h, g: 2451545.0,
        "swe_calc_ut": swe_calc_ut,
        "swe_set_ephe_path": swe_set_ephe_path,
        "swe_set_sid_mode": swe_set_sid_mode,
        "swe_get_ayanamsa_ut": lambda tjd: 23.85,
        "swe_rise_trans": swe_rise_trans,
        "swe_azalt": swe_azalt,
        "swe_version": swe_version,
    }
    functions.update(overrides)
    library = SimpleNamespace(**{name: fn for name, fn in functions.items() if fn is not None})
    return library, state


def test_ctypes_adapter_binds_every_required_symbol() -> None:
    library, _ = make_fake_library()
    adapter = CtypesSwephAdapter(library, source="/opt/libswe.so")

    assert isinstance(adapter, EphemerisBackend)
    for symbol in REQUIRED_SYMBOLS:
        assert hasattr(getattr(library, symbol), "argtypes")
    assert adapter.source == "/opt/libswe.so"


def test_ctypes_adapter_rejects_library_missing_exports() -> None:
    library, _ = make_fake_library(swe_azalt=None)
    with pytest.raises(AttributeError):
        CtypesSwephAdapter(library)


def test_ctypes_adapter_calc_position() -> None:
    library, _ = make_fake_library()
    adapter = CtypesSwephAdapter(library)

    assert adapter.calc_position(2451545.0, 1, SEFLG_SWIEPH) == CalcResult(10.0, 1.0, 2.0, 0.5, 0.1, 0.01)
    error = adapter.calc_position(2451545.0, 99, SEFLG_SWIEPH)
    assert error == EngineError("calc_position", "illegal planet number 99.")


def test_ctypes_adapter_rise_transit_variants() -> None:
    library, state = make_fake_library()
    adapter = CtypesSwephAdapter(library)

    found = adapter.rise_transit(2451545.0, 0, None, SEFLG_SWIEPH, SE_CALC_RISE, LONDON, 0.0, 0.0)
    assert found == RiseTransResult(transit_time=2451545.25, flag=0)

    absent = adapter.rise_transit(2451545.0, 0, None, SEFLG_SWIEPH, SE_CALC_SET, TROMSO, 0.0, 0.0)
    assert absent == RiseTransResult(transit_time=None, flag=RISE_TRANS_NOT_FOUND)

    failed = adapter.rise_transit(2451545.0, -1, None, SEFLG_SWIEPH, SE_CALC_SET, LONDON, 0.0, 0.0)
    assert isinstance(failed, EngineError)
    assert failed.message == "no body"

    star = adapter.rise_transit(2451545.0, -1, "Sirius", SEFLG_SWIEPH, SE_CALC_RISE, LONDON, 0.0, 0.0)
    assert isinstance(star, RiseTransResult)
    assert state.star_names == ["Sirius"]


def test_ctypes_adapter_scalar_operations() -> None:
    library, state = make_fake_library()
    adapter = CtypesSwephAdapter(library)

    assert adapter.az_alt(2451545.0, SE_EQU2HOR, LONDON, 0.0, 0.0, (10.0, 5.0, 1.0)) == AzAltResult(
        190.0, 5.0, 5.5
    )
    assert adapter.day_number(2000, 1, 1, 12.0, 1) == 2451545.0
    assert adapter.ayanamsa(2451545.0) == 23.85
    adapter.set_sidereal_mode(1, 0.0, 0.0)
    assert state.sid_mode == (1, 0.0, 0.0)
    adapter.set_ephemeris_path("/srv/ephe")
    assert state.ephe_path == b"/srv/ephe"
    assert adapter.version() == "2.10.03"


class DummySweError(Exception):
    pass


class DummySweModule:
    """Shape-compatible subset of :mod:`swisseph`."""

    Error = DummySweError
    version = "2.10.03"

    def __init__(self) -> None:
        self.rise_calls: list[tuple] = []
        self.sid_mode = None
        self.ephe_path = None

    def calc_ut(self, tjd, ipl, flags):
        if ipl > 22:
            raise DummySweError(f"illegal planet number {ipl}.")
        return (ipl * 10.0, 1.0, 2.0, 0.5, 0.1, 0.01), flags

    def rise_trans(self, tjd, body, rsmi, geopos, atpress, attemp, flags):
        self.rise_calls.append((tjd, body, rsmi, geopos, atpress, attemp, flags))
        if abs(geopos[1]) > 66.56:
            return RISE_TRANS_NOT_FOUND, (0.0,) * 10
        return 0, (tjd + 0.25,) + (0.0,) * 9

    def azalt(self, tjd, flag, geopos, atpress, attemp, xin):
        return xin[0] + 180.0, xin[1], xin[1] + 0.5

    def set_sid_mode(self, mode, t0, ayan_t0):
        self.sid_mode = (mode, t0, ayan_t0)

    def get_ayanamsa_ut(self, tjd):
        return 23.85

    def julday(self, y, m, d, h, cal):
        return 2451545.0

    def set_ephe_path(self, path):
        self.ephe_path = path


def test_module_adapter_folds_exceptions_into_error_variant() -> None:
    adapter = SwissephModuleAdapter(DummySweModule())

    assert isinstance(adapter, EphemerisBackend)
    assert adapter.calc_position(2451545.0, 0, SEFLG_SWIEPH) == CalcResult(0.0, 1.0, 2.0, 0.5, 0.1, 0.01)
    error = adapter.calc_position(2451545.0, 99, SEFLG_SWIEPH)
    assert isinstance(error, EngineError)
    assert "illegal planet number 99" in error.message


def test_module_adapter_rise_transit_passes_star_or_body() -> None:
    module = DummySweModule()
    adapter = SwissephModuleAdapter(module)

    body = adapter.rise_transit(2451545.0, 0, None, SEFLG_SWIEPH, SE_CALC_RISE, LONDON[:2], 0.0, 0.0)
    star = adapter.rise_transit(2451545.0, 0, "Sirius", SEFLG_SWIEPH, SE_CALC_RISE, LONDON, 0.0, 0.0)
    polar = adapter.rise_transit(2451545.0, 0, None, SEFLG_SWIEPH, SE_CALC_SET, TROMSO, 0.0, 0.0)

    assert body == RiseTransResult(2451545.25, 0)
    assert isinstance(star, RiseTransResult)
    assert polar == RiseTransResult(None, RISE_TRANS_NOT_FOUND)
    assert module.rise_calls[0][1] == 0
    assert module.rise_calls[0][3] == (LONDON[0], LONDON[1], 0.0)
    assert module.rise_calls[1][1] == "Sirius"


def test_module_adapter_scalar_operations() -> None:
    module = DummySweModule()
    adapter = SwissephModuleAdapter(module)

    assert adapter.az_alt(2451545.0, SE_EQU2HOR, LONDON, 0.0, 0.0, (10.0, 5.0)) == AzAltResult(190.0, 5.0, 5.5)
    assert adapter.day_number(2000, 1, 1, 12.0, 1) == 2451545.0
    adapter.set_sidereal_mode(27, 0.0, 0.0)
    assert module.sid_mode == (27, 0.0, 0.0)
    assert adapter.ayanamsa(2451545.0) == 23.85
    adapter.set_ephemeris_path("/srv/ephe")
    assert module.ephe_path == "/srv/ephe"
    assert adapter.version() == "2.10.03"

from __future__ import annotations

from astrobridge.bridge import HostBridgeAdapter
from astrobridge.constants import SE_CALC_RISE, SE_EQU2HOR, SEFLG_SWIEPH
from astrobridge.contract import AzAltResult, CalcResult, EngineError, EphemerisBackend, RiseTransResult


class DummyHostBridge:
    """Mimics a host module returning mapping-shaped responses."""

    def __init__(self) -> None:
        self.ephe_path = None
        self.sid_mode = None

    def swe_calc_ut(self, tjd, ipl, iflag):
        if ipl > 22:
            return {"error": f"illegal planet number {ipl}."}
        return {
            "longitude": 280.5,
            "latitude": 0.0,
            "distance": 0.98,
            "longitudeSpeed": 1.02,
            "latitudeSpeed": 0.0,
            "distanceSpeed": 0.0,
        }

    def swe_rise_trans(self, tjd, ipl, starname, epheflag, rsmi, geopos, atpress, attemp):
        if geopos[1] > 66.56:
            return {"transitTime": None, "flag": -2}
        return {"transitTime": 2451545.3, "flag": 0}

    def swe_azalt(self, tjd, calc_flag, geopos, atpress, attemp, xin):
        return {"azimuth": 123.0, "altitude": 45.0}

    def swe_set_sid_mode(self, mode, t0, ayan_t0):
        self.sid_mode = (mode, t0, ayan_t0)

    def swe_get_ayanamsa_ut(self, tjd):
        return 23.85

    def swe_julday(self, y, m, d, h, g):
        return 2451545.0

    def swe_set_ephe_path(self, path):
        self.ephe_path = path

    def swe_version(self):
        return "2.10.03"


def test_bridge_maps_payloads_into_result_types() -> None:
    bridge = DummyHostBridge()
    adapter = HostBridgeAdapter(bridge)

    assert isinstance(adapter, EphemerisBackend)
    assert adapter.calc_position(2451545.0, 0, SEFLG_SWIEPH) == CalcResult(280.5, 0.0, 0.98, 1.02, 0.0, 0.0)
    assert adapter.az_alt(2451545.0, SE_EQU2HOR, (0.0, 51.5), 0.0, 0.0, (1.0, 2.0)) == AzAltResult(123.0, 45.0)
    assert adapter.day_number(2000, 1, 1, 12.0, 1) == 2451545.0
    assert adapter.ayanamsa(2451545.0) == 23.85
    assert adapter.version() == "2.10.03"
    adapter.set_ephemeris_path("/srv/ephe")
    adapter.set_sidereal_mode(1, 0.0, 0.0)
    assert bridge.ephe_path == "/srv/ephe"
    assert bridge.sid_mode == (1, 0.0, 0.0)


def test_bridge_error_key_becomes_error_variant() -> None:
    result = HostBridgeAdapter(DummyHostBridge()).calc_position(2451545.0, 99, SEFLG_SWIEPH)

    assert result == EngineError("calc_position", "illegal planet number 99.")


def test_bridge_missing_fields_become_error_variant() -> None:
    bridge = DummyHostBridge()
    bridge.swe_calc_ut = lambda tjd, ipl, iflag: {"longitude": 1.0}  # type: ignore[method-assign]

    result = HostBridgeAdapter(bridge).calc_position(2451545.0, 0, SEFLG_SWIEPH)

    assert isinstance(result, EngineError)
    assert "latitude" in result.message


def test_bridge_rise_transit_absent_event() -> None:
    adapter = HostBridgeAdapter(DummyHostBridge())

    found = adapter.rise_transit(2451545.0, 0, None, SEFLG_SWIEPH, SE_CALC_RISE, (0.0, 51.5), 0.0, 0.0)
    absent = adapter.rise_transit(2451545.0, 0, None, SEFLG_SWIEPH, SE_CALC_RISE, (0.0, 78.2), 0.0, 0.0)

    assert found == RiseTransResult(2451545.3, 0)
    assert absent == RiseTransResult(None, -2)
    assert not absent.found


def test_bridge_az_alt_missing_fields_become_error_variant() -> None:
    bridge = DummyHostBridge()
    bridge.swe_azalt = lambda *args: {"azimuth": 10.0}  # type: ignore[method-assign]

    result = HostBridgeAdapter(bridge).az_alt(2451545.0, SE_EQU2HOR, (0.0, 51.5), 0.0, 0.0, (1.0, 2.0))

    assert isinstance(result, EngineError)
    assert result.operation == "az_alt"
    assert "altitude" in result.message

"""Deployment diagnostics for the engine backends."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from importlib import metadata
from pathlib import Path
from typing import Any, Literal

from ..boot.logging import configure_logging
from ..ephemeris.swe import has_swe
from ..ephemeris.utils import get_se_ephe_path, has_ephemeris_files
from ..native.platform import SUPPORTED_PLATFORMS, has_prebuilds, platform_info
from ..runtime_config import BridgeConfig, RuntimeSettings, resolve_bridge_config
from ..wasm.loader import DEFAULT_WASM_PATH

__all__ = ["DoctorCheck", "main", "run_bridge_doctor"]

Status = Literal["ok", "warn", "error"]


@dataclass(frozen=True, slots=True)
class DoctorCheck:
    """Structure returned for each diagnostic check."""

    name: str
    status: Status
    detail: str
    data: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "status": self.status,
            "detail": self.detail,
        }
        if self.data is not None:
            payload["data"] = dict(self.data)
        return payload


_STATUS_WEIGHT: dict[Status, int] = {"ok": 0, "warn": 1, "error": 2}


def _merge_status(values: Iterable[Status]) -> Status:
    """Return the most severe status present in ``values``."""

    worst: Status = "ok"
    for value in values:
        if _STATUS_WEIGHT.get(value, 2) > _STATUS_WEIGHT[worst]:
            worst = value
    return worst


def _distribution_version(name: str) -> str | None:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return None


def _check_platform(config: BridgeConfig) -> DoctorCheck:
    info = platform_info(prebuild_dir=config.prebuild_dir)
    if info.is_supported:
        return DoctorCheck("platform", "ok", f"{info.key} has official prebuilds", info.as_dict())
    return DoctorCheck(
        "platform",
        "warn",
        f"{info.key} is not one of {', '.join(SUPPORTED_PLATFORMS)}; only local builds or pyswisseph can load",
        info.as_dict(),
    )


def _check_native_sources(config: BridgeConfig) -> DoctorCheck:
    prebuilt = has_prebuilds(prebuild_dir=config.prebuild_dir)
    swisseph = has_swe()
    data = {
        "prebuilt_library": prebuilt,
        "pyswisseph": swisseph,
        "pyswisseph_version": _distribution_version("pyswisseph"),
    }
    if prebuilt:
        return DoctorCheck("native_backend", "ok", "prebuilt engine library present", data)
    if swisseph:
        return DoctorCheck("native_backend", "ok", "pyswisseph fallback available", data)
    return DoctorCheck(
        "native_backend",
        "error",
        "no prebuilt library and pyswisseph is not installed",
        data,
    )


def _check_wasm(config: BridgeConfig) -> DoctorCheck:
    path = Path(config.wasm_path or DEFAULT_WASM_PATH)
    data = {"path": str(path), "wasmtime": _distribution_version("wasmtime")}
    if path.is_file():
        return DoctorCheck("wasm_backend", "ok", "WebAssembly module present", data)
    return DoctorCheck("wasm_backend", "warn", "WebAssembly module not found", data)


def _check_ephemeris(config: BridgeConfig) -> DoctorCheck:
    path = config.ephe_path or get_se_ephe_path()
    if not path:
        return DoctorCheck(
            "ephemeris_data",
            "warn",
            "no ephemeris directory found; engines fall back to built-in Moshier data",
        )
    if has_ephemeris_files(path):
        return DoctorCheck("ephemeris_data", "ok", f"ephemeris files found in {path}", {"path": path})
    return DoctorCheck(
        "ephemeris_data",
        "warn",
        f"{path} holds no .se1 files",
        {"path": path},
    )


def _check_runtime(config: BridgeConfig) -> DoctorCheck:
    data = {
        "serverless": config.serverless,
        "cache_module": config.cache_module,
        "result_cache_enabled": config.result_cache_enabled,
        "cache_ttl_seconds": config.cache_ttl_seconds,
        "cache_max_entries": config.cache_max_entries,
        "pool_max_size": config.pool_max_size,
    }
    if config.serverless and not config.cache_module:
        detail = "serverless host detected; native handle reloaded per invocation"
    elif config.serverless:
        detail = "serverless host detected; native handle retained"
    else:
        detail = "long-lived host; native handle retained"
    return DoctorCheck("runtime", "ok", detail, data)


def run_bridge_doctor(config: BridgeConfig | None = None) -> dict[str, Any]:
    """Execute all checks and return a serialisable payload."""

    effective = config or resolve_bridge_config()
    checks = [
        _check_platform(effective),
        _check_native_sources(effective),
        _check_wasm(effective),
        _check_ephemeris(effective),
        _check_runtime(effective),
    ]
    return {
        "status": _merge_status(check.status for check in checks),
        "generated_at": datetime.now(UTC).isoformat(),
        "checks": {check.name: check.as_dict() for check in checks},
    }


def _emit_text_report(report: Mapping[str, Any]) -> None:
    sys.stdout.write("# astrobridge doctor\n")
    sys.stdout.write(f"Overall: {report['status']}\n")
    for check in report["checks"].values():
        sys.stdout.write(f"  [{check['status']}] {check['name']}: {check['detail']}\n")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="astrobridge-doctor",
        description="Report which ephemeris backends can load in this environment.",
    )
    parser.add_argument("--as-json", action="store_true", help="Emit JSON instead of text")
    args = parser.parse_args(argv)

    settings = RuntimeSettings()
    configure_logging(level=settings.log_level, stream=sys.stderr)
    report = run_bridge_doctor(resolve_bridge_config(settings))

    if args.as_json:
        json.dump(report, sys.stdout, indent=2, sort_keys=True)
        sys.stdout.write("\n")
    else:
        _emit_text_report(report)

    return 0 if report["status"] != "error" else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

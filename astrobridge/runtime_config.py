"""Runtime configuration resolved from environment variables and .env files.

Environment sniffing is confined to :func:`resolve_bridge_config`; everything
else in the package receives an explicit, frozen :class:`BridgeConfig`.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Final

from pydantic import Field, PositiveFloat, PositiveInt, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG = logging.getLogger(__name__)

__all__ = [
    "BridgeConfig",
    "RuntimeSettings",
    "SERVERLESS_MARKERS",
    "detect_serverless",
    "resolve_bridge_config",
]

SERVERLESS_MARKERS: Final[tuple[str, ...]] = (
    "VERCEL",
    "AWS_LAMBDA_FUNCTION_NAME",
    "FUNCTION_NAME",
    "K_SERVICE",
    "NETLIFY",
)
"""Platform-provided variables whose presence marks a short-lived function host."""

DEFAULT_CACHE_TTL_SECONDS: Final[float] = 300.0
DEFAULT_CACHE_MAX_ENTRIES: Final[int] = 1000
DEFAULT_POOL_MAX_SIZE: Final[int] = 3
DEFAULT_POOL_ACQUIRE_TIMEOUT: Final[float] = 5.0

_ENV_FILE = Path.cwd() / ".env"


class RuntimeSettings(BaseSettings):
    """Raw settings read from the process environment."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        extra="ignore",
        populate_by_name=True,
    )

    serverless: bool | None = Field(default=None, alias="SWEPH_SERVERLESS")
    cache_module: bool | None = Field(default=None, alias="SWEPH_CACHE_MODULE")
    disable_cache: bool = Field(default=False, alias="SWEPH_DISABLE_CACHE")
    cache_ttl_seconds: PositiveFloat = Field(
        default=DEFAULT_CACHE_TTL_SECONDS, alias="ASTROBRIDGE_CACHE_TTL"
    )
    cache_max_entries: PositiveInt = Field(
        default=DEFAULT_CACHE_MAX_ENTRIES, alias="ASTROBRIDGE_CACHE_SIZE"
    )
    pool_max_size: PositiveInt = Field(default=DEFAULT_POOL_MAX_SIZE, alias="ASTROBRIDGE_POOL_SIZE")
    pool_acquire_timeout: PositiveFloat = Field(
        default=DEFAULT_POOL_ACQUIRE_TIMEOUT, alias="ASTROBRIDGE_POOL_TIMEOUT"
    )
    se_ephe_path: Path | None = Field(default=None, alias="SE_EPHE_PATH")
    swe_eph_path: Path | None = Field(default=None, alias="SWE_EPH_PATH")
    prebuild_dir: Path | None = Field(default=None, alias="ASTROBRIDGE_PREBUILD_DIR")
    wasm_path: Path | None = Field(default=None, alias="ASTROBRIDGE_WASM_PATH")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("serverless", "cache_module", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("se_ephe_path", "swe_eph_path", "prebuild_dir", "wasm_path", mode="before")
    @classmethod
    def _expand_optional_path(cls, value: Path | str | None) -> Path | None:
        if value in {None, ""}:
            return None
        return Path(value).expanduser()

    @model_validator(mode="after")
    def _propagate_ephemeris_alias(self) -> "RuntimeSettings":
        if self.se_ephe_path is None and self.swe_eph_path is not None:
            object.__setattr__(self, "se_ephe_path", self.swe_eph_path)
        return self


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    """Explicit configuration handed to loaders, caches and pools."""

    serverless: bool = False
    cache_module: bool = True
    result_cache_enabled: bool = True
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    pool_max_size: int = DEFAULT_POOL_MAX_SIZE
    pool_acquire_timeout: float = DEFAULT_POOL_ACQUIRE_TIMEOUT
    ephe_path: str | None = None
    prebuild_dir: Path | None = None
    wasm_path: Path | None = None

    def __post_init__(self) -> None:
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be positive")
        if self.cache_max_entries <= 0:
            raise ValueError("cache_max_entries must be positive")
        if self.pool_max_size <= 0:
            raise ValueError("pool_max_size must be positive")
        if self.pool_acquire_timeout <= 0:
            raise ValueError("pool_acquire_timeout must be positive")

    def with_overrides(self, **changes: Any) -> "BridgeConfig":
        """Return a copy with ``changes`` applied."""

        return replace(self, **changes)


def detect_serverless(environ: Mapping[str, str] | None = None) -> bool:
    """Return ``True`` when any serverless marker variable is set."""

    env = os.environ if environ is None else environ
    return any(env.get(key) for key in SERVERLESS_MARKERS)


def resolve_bridge_config(
    settings: RuntimeSettings | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> BridgeConfig:
    """Build a :class:`BridgeConfig` from the environment plus explicit overrides.

    In serverless hosts the native handle is not retained across invocations
    unless ``SWEPH_CACHE_MODULE`` is set to true; everywhere else it is.
    Keyword ``overrides`` win over anything read from the environment.

    ``environ`` only feeds serverless marker detection. Every other value
    comes from ``settings``, which reads the process environment unless its
    fields are passed explicitly (``RuntimeSettings(_env_file=None, ...)``).
    """

    resolved = settings if settings is not None else RuntimeSettings()
    serverless = (
        resolved.serverless if resolved.serverless is not None else detect_serverless(environ)
    )
    if resolved.cache_module is not None:
        cache_module = resolved.cache_module
    else:
        cache_module = not serverless

    config = BridgeConfig(
        serverless=serverless,
        cache_module=cache_module,
        result_cache_enabled=not resolved.disable_cache,
        cache_ttl_seconds=float(resolved.cache_ttl_seconds),
        cache_max_entries=int(resolved.cache_max_entries),
        pool_max_size=int(resolved.pool_max_size),
        pool_acquire_timeout=float(resolved.pool_acquire_timeout),
        ephe_path=str(resolved.se_ephe_path) if resolved.se_ephe_path else None,
        prebuild_dir=resolved.prebuild_dir,
        wasm_path=resolved.wasm_path,
    )
    if overrides:
        config = config.with_overrides(**overrides)

    LOG.debug(
        "Resolved bridge config (serverless=%s, cache_module=%s, result_cache=%s)",
        config.serverless,
        config.cache_module,
        config.result_cache_enabled,
    )
    return config

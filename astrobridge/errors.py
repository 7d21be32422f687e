"""Exception hierarchy raised at the loader, marshaling and pool boundaries.

Engine-reported calculation failures are *not* exceptions; they are returned as
:class:`astrobridge.contract.EngineError` values.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

__all__ = [
    "AstroBridgeError",
    "BackendLoadError",
    "BackendNotInitializedError",
    "MarshalingError",
    "PoolExhaustedError",
]


class AstroBridgeError(RuntimeError):
    """Structured error carrying a stable code and diagnostic context."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.context = dict(context or {})


class BackendLoadError(AstroBridgeError):
    """No loading strategy produced a working backend."""

    def __init__(
        self,
        message: str,
        *,
        platform_key: str,
        attempts: Sequence[str] = (),
        supported_platforms: Sequence[str] = (),
    ) -> None:
        super().__init__(
            message,
            error_code="BACKEND_LOAD",
            context={
                "platform_key": platform_key,
                "attempts": list(attempts),
                "supported_platforms": list(supported_platforms),
            },
        )
        self.platform_key = platform_key
        self.attempts = tuple(attempts)
        self.supported_platforms = tuple(supported_platforms)


class BackendNotInitializedError(AstroBridgeError):
    """A backend was requested synchronously before any load completed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="BACKEND_NOT_INITIALIZED")


class MarshalingError(AstroBridgeError):
    """Linear-memory allocation, access or decoding failed."""

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(
            message,
            error_code="MARSHALING",
            context={"operation": operation} if operation else None,
        )
        self.operation = operation


class PoolExhaustedError(AstroBridgeError):
    """Every pooled instance stayed borrowed for the whole acquire timeout."""

    def __init__(self, *, max_size: int, timeout: float) -> None:
        super().__init__(
            f"instance pool exhausted: {max_size} instance(s) in use after waiting {timeout:g}s",
            error_code="POOL_EXHAUSTED",
            context={"max_size": max_size, "timeout": timeout},
        )
        self.max_size = max_size
        self.timeout = timeout

"""Adapters for engines exposed by an embedding host."""

from __future__ import annotations

from .adapter import HostBridgeAdapter

__all__ = ["HostBridgeAdapter"]

"""Metrics and diagnostics."""

from __future__ import annotations

from .metrics import ensure_metrics_registered

__all__ = ["ensure_metrics_registered"]
